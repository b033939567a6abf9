"""Maps provider events onto the destination's envelope."""

from typing import Any

from .clock import IClock, utc_datetime
from .models import AdaptedEnvelope

ENVELOPE_SOURCE = "webhook-gateway"
DEFAULT_EVENT_TYPE = "webhook_received"


def iso_timestamp(clock: IClock) -> str:
    """ISO 8601 UTC with millisecond precision, e.g. 2024-01-01T12:00:00.000Z."""
    return utc_datetime(clock).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class PayloadAdapter:
    """Pure, total mapping from an inbound body to an AdaptedEnvelope."""

    def __init__(self, clock: IClock):
        self._clock = clock

    def adapt(
        self,
        inbound_body: dict[str, Any],
        internal_event_id: str,
        correlation_id: str | None = None,
    ) -> AdaptedEnvelope:
        """Build the destination envelope.

        ``occurred_at`` is stamped here rather than taken from the body, and
        ``payload`` is the inbound body itself, untouched.
        """
        event_type = inbound_body.get("type")
        external_id = inbound_body.get("id")

        return AdaptedEnvelope(
            source=ENVELOPE_SOURCE,
            event_type=str(event_type) if event_type else DEFAULT_EVENT_TYPE,
            external_id=str(external_id) if external_id else internal_event_id,
            payload=inbound_body,
            occurred_at=iso_timestamp(self._clock),
            internal_event_id=internal_event_id,
            correlation_id=correlation_id,
        )
