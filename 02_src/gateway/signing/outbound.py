"""Outbound envelope signing for the destination service."""

import hashlib
import hmac
import json
from typing import Any

from ..models import AdaptedEnvelope, OutboundSecret, SignedPayload


def compact_json(data: Any) -> bytes:
    """Whitespace-free JSON in insertion order, UTF-8 encoded."""
    return json.dumps(
        data, separators=(",", ":"), ensure_ascii=False, allow_nan=False
    ).encode("utf-8")


def canonical_outbound_message(timestamp: str, body: bytes) -> bytes:
    """Exact bytes the destination verifies: ``timestamp + "." + body``."""
    return timestamp.encode("ascii") + b"." + body


class OutboundSigner:
    """Signs adapted envelopes under the destination's secret."""

    def sign(
        self, envelope: AdaptedEnvelope, secret: OutboundSecret, now: float
    ) -> SignedPayload:
        """Serialize ``envelope`` once and sign the result.

        The returned body is the exact byte sequence that was signed and must
        be sent unchanged. The signature carries no scheme prefix.
        """
        if not isinstance(secret, OutboundSecret):
            raise TypeError("Outbound signing requires an OutboundSecret")

        timestamp = str(int(now))
        body = compact_json(envelope.to_dict())
        signature = hmac.new(
            secret.key, canonical_outbound_message(timestamp, body), hashlib.sha256
        ).hexdigest()
        return SignedPayload(body=body, signature=signature, timestamp=timestamp)
