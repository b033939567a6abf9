"""Inbound webhook signature verification.

The provider signs ``path + "\\n" + raw_body`` with HMAC-SHA256 and sends the
hex digest in ``X-Signature`` (optionally prefixed ``sha256=``) alongside a
Unix timestamp in ``X-Timestamp``.
"""

import hashlib
import hmac
import re
from typing import Protocol

from ..models import InboundSecret, RejectReason, VerificationResult

SIGNATURE_PREFIX = "sha256="
DEFAULT_TOLERANCE_SECONDS = 60
TIMESTAMP_PATTERN = re.compile(r"-?[0-9]+")


def canonical_inbound_message(path: str, raw_body: bytes) -> bytes:
    """Exact bytes the provider signs."""
    return path.encode("utf-8") + b"\n" + raw_body


def compute_inbound_signature(secret: InboundSecret, path: str, raw_body: bytes) -> str:
    """Hex HMAC-SHA256 over the inbound canonical message."""
    return hmac.new(
        secret.key, canonical_inbound_message(path, raw_body), hashlib.sha256
    ).hexdigest()


class ISignatureVerifier(Protocol):
    """Authenticates inbound events."""

    def verify(
        self,
        secret: InboundSecret,
        path: str,
        raw_body: bytes,
        received_signature: str | None,
        received_timestamp: str | None,
        now: float,
    ) -> VerificationResult:
        """Accept or reject one inbound request."""
        ...


class SignatureVerifier:
    """HMAC-SHA256 verifier with a timestamp tolerance window."""

    def __init__(self, tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS):
        self._tolerance = tolerance_seconds

    def verify(
        self,
        secret: InboundSecret,
        path: str,
        raw_body: bytes,
        received_signature: str | None,
        received_timestamp: str | None,
        now: float,
    ) -> VerificationResult:
        """Accept or reject one inbound request.

        Checks run in order: signature present, timestamp present, timestamp
        within the tolerance window, signature matches. A timestamp that is
        not plain decimal digits cannot be placed in the window and is
        rejected as out of window.
        """
        if not isinstance(secret, InboundSecret):
            raise TypeError("Inbound verification requires an InboundSecret")

        signature = (received_signature or "").strip()
        if signature.lower().startswith(SIGNATURE_PREFIX):
            signature = signature[len(SIGNATURE_PREFIX):]
        if not signature:
            return VerificationResult.reject(RejectReason.MISSING_SIGNATURE)

        timestamp = (received_timestamp or "").strip()
        if not timestamp:
            return VerificationResult.reject(RejectReason.MISSING_TIMESTAMP)

        if not TIMESTAMP_PATTERN.fullmatch(timestamp):
            return VerificationResult.reject(RejectReason.TIMESTAMP_OUT_OF_WINDOW)
        sent_at = int(timestamp)

        if abs(int(now) - sent_at) > self._tolerance:
            return VerificationResult.reject(RejectReason.TIMESTAMP_OUT_OF_WINDOW)

        expected = compute_inbound_signature(secret, path, raw_body)
        if not hmac.compare_digest(
            expected.encode("ascii"), signature.lower().encode("utf-8")
        ):
            return VerificationResult.reject(RejectReason.INVALID_SIGNATURE)

        return VerificationResult.accept()
