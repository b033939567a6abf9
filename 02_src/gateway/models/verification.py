"""Signature verification result models."""

from dataclasses import dataclass
from enum import Enum


class RejectReason(str, Enum):
    """Why an inbound request failed authentication."""

    MISSING_SIGNATURE = "missing_signature"
    MISSING_TIMESTAMP = "missing_timestamp"
    INVALID_SIGNATURE = "invalid_signature"
    TIMESTAMP_OUT_OF_WINDOW = "timestamp_out_of_window"


@dataclass(frozen=True)
class VerificationResult:
    """Accept, or reject with a reason."""

    accepted: bool
    reason: RejectReason | None = None

    @classmethod
    def accept(cls) -> "VerificationResult":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectReason) -> "VerificationResult":
        return cls(accepted=False, reason=reason)


class ReplayDecision(str, Enum):
    """Outcome of a replay-guard check."""

    FRESH = "fresh"
    DUPLICATE = "duplicate"
