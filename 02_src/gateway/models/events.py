"""Inbound event and adapted envelope models."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class InboundEvent:
    """A signed webhook request exactly as received."""

    path: str
    raw_body: bytes
    content_type: str | None = None
    signature: str | None = None  # hex, optional "sha256=" prefix
    timestamp: str | None = None  # Unix seconds
    idempotency_key: str | None = None
    correlation_id: str | None = None


@dataclass(frozen=True)
class AdaptedEnvelope:
    """Event envelope expected by the destination service."""

    source: str
    event_type: str
    external_id: str
    payload: dict[str, Any]
    occurred_at: str
    internal_event_id: str
    correlation_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serializable form in the destination's field order.

        correlation_id is left out entirely when absent.
        """
        data: dict[str, Any] = {
            "source": self.source,
            "event_type": self.event_type,
            "external_id": self.external_id,
            "payload": self.payload,
            "occurred_at": self.occurred_at,
        }
        if self.correlation_id is not None:
            data["correlation_id"] = self.correlation_id
        data["internal_event_id"] = self.internal_event_id
        return data


class AcceptanceStatus(str, Enum):
    """How an authenticated inbound event was acknowledged."""

    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class Acceptance:
    """Synchronous answer to the webhook caller."""

    status: AcceptanceStatus
    internal_event_id: str | None = None
