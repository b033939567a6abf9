"""Outbound forwarding models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ForwardState(str, Enum):
    """Retry state machine states.

    NOT_STARTED and the terminal states appear in a returned ForwardResult.
    ATTEMPTING is the state while ``ForwardingClient.send`` is running; it is
    carried by every RetryAttempt except the last, which holds the final state.
    """

    NOT_STARTED = "not_started"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FAILED_TERMINAL = "failed_terminal"
    FAILED_EXHAUSTED = "failed_exhausted"


@dataclass(frozen=True)
class SignedPayload:
    """Envelope bytes together with the signature computed over them."""

    body: bytes
    signature: str  # hex, no scheme prefix
    timestamp: str  # Unix seconds


@dataclass(frozen=True)
class RetryAttempt:
    """One forwarding attempt as observed by the client."""

    ordinal: int
    status: int | None  # None on network failure
    error_class: str | None = None
    delay: float | None = None  # seconds before the next attempt, if any
    state: ForwardState = ForwardState.ATTEMPTING  # terminal on the last attempt


@dataclass
class ForwardResult:
    """Final result of a forward, success or failure."""

    ok: bool
    status: int  # 0 when no HTTP response was received
    body: Any = None
    attempts: int = 0
    state: ForwardState = ForwardState.NOT_STARTED
    error: str | None = None
    history: list[RetryAttempt] = field(default_factory=list)

    @property
    def retry_count(self) -> int:
        """Attempts made beyond the first."""
        return max(self.attempts - 1, 0)
