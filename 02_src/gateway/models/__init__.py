"""Core data models for the webhook gateway."""

from .events import Acceptance, AcceptanceStatus, AdaptedEnvelope, InboundEvent
from .forwarding import ForwardResult, ForwardState, RetryAttempt, SignedPayload
from .outcomes import OutcomeRecord, OutcomeStatus
from .secrets import MIN_SECRET_BYTES, InboundSecret, OutboundSecret
from .verification import RejectReason, ReplayDecision, VerificationResult

__all__ = [
    # Events
    "InboundEvent",
    "AdaptedEnvelope",
    "Acceptance",
    "AcceptanceStatus",
    # Secrets
    "MIN_SECRET_BYTES",
    "InboundSecret",
    "OutboundSecret",
    # Verification
    "RejectReason",
    "ReplayDecision",
    "VerificationResult",
    # Forwarding
    "ForwardResult",
    "ForwardState",
    "RetryAttempt",
    "SignedPayload",
    # Outcomes
    "OutcomeRecord",
    "OutcomeStatus",
]
