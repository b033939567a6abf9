"""Outbound forwarding module."""

from .client import AttemptHandler, ForwardingClient, IForwardingClient
from .forwarder import DestinationForwarder, build_headers
from .retry import RetryPolicy, is_retryable, is_success

__all__ = [
    "AttemptHandler",
    "DestinationForwarder",
    "ForwardingClient",
    "IForwardingClient",
    "RetryPolicy",
    "build_headers",
    "is_retryable",
    "is_success",
]
