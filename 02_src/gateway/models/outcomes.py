"""Outcome record models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class OutcomeStatus(str, Enum):
    """Lifecycle of a forwarded event."""

    RECEIVED = "received"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class OutcomeRecord:
    """Durable per-event status used for audit and replay."""

    event_id: str
    status: OutcomeStatus
    timestamp: datetime
    env: str
    service_role: str
    retry_count: int = 0
    source: str = "webhook"
    error_code: str | None = None
    error_message: str | None = None
    response_status: int | None = None
    correlation_id: str | None = None

    def to_dict(self) -> dict:
        """JSON-friendly representation."""
        return {
            "event_id": self.event_id,
            "env": self.env,
            "service_role": self.service_role,
            "source": self.source,
            "status": self.status.value,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "retry_count": self.retry_count,
            "response_status": self.response_status,
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp.isoformat(),
        }
