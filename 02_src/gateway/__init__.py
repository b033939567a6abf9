"""Webhook gateway: verify, deduplicate, adapt and relay signed webhooks."""

from .adapter import PayloadAdapter
from .app import Application, IApplication
from .clock import FrozenClock, IClock, SystemClock
from .config import GatewayConfig
from .errors import (
    AccessGuardError,
    AuthenticationError,
    ConfigurationError,
    GatewayError,
    ValidationError,
)
from .forwarding import DestinationForwarder, ForwardingClient, RetryPolicy
from .outcomes import IOutcomeRecorder, OutcomeRecorder
from .pipeline import IPipeline, Pipeline
from .replay import IReplayGuard, ReplayGuard
from .signing import OutboundSigner, SignatureVerifier
from .storage import IStorage, Storage

__all__ = [
    # Application
    "Application",
    "IApplication",
    "GatewayConfig",
    # Errors
    "GatewayError",
    "AuthenticationError",
    "ValidationError",
    "ConfigurationError",
    "AccessGuardError",
    # Components
    "IClock",
    "SystemClock",
    "FrozenClock",
    "SignatureVerifier",
    "IReplayGuard",
    "ReplayGuard",
    "PayloadAdapter",
    "OutboundSigner",
    "ForwardingClient",
    "RetryPolicy",
    "DestinationForwarder",
    "IOutcomeRecorder",
    "OutcomeRecorder",
    "IPipeline",
    "Pipeline",
    "IStorage",
    "Storage",
]
