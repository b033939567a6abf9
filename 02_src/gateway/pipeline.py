"""Verification, deduplication and forwarding of one inbound webhook."""

import asyncio
import json
import math
import uuid
from typing import Any, Protocol

from .clock import IClock
from .errors import AuthenticationError, ConfigurationError, ValidationError
from .forwarding import DestinationForwarder
from .logging_config import get_logger
from .models import (
    Acceptance,
    AcceptanceStatus,
    InboundEvent,
    InboundSecret,
    ReplayDecision,
    RetryAttempt,
)
from .outcomes import IOutcomeRecorder
from .replay import IReplayGuard, fingerprint_for
from .signing import ISignatureVerifier

logger = get_logger(__name__)


def _reject_constant(name: str) -> Any:
    raise ValidationError(f"Body contains non-standard JSON constant: {name}")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValidationError(f"Body contains out-of-range number: {text}")
    return value


def parse_body(event: InboundEvent) -> dict[str, Any]:
    """Structural validation: a JSON object sent as application/json."""
    media_type = (event.content_type or "").split(";")[0].strip().lower()
    if media_type != "application/json":
        raise ValidationError("Content-Type must be application/json")

    try:
        body = json.loads(
            event.raw_body, parse_constant=_reject_constant, parse_float=_finite_float
        )
    except ValueError as e:
        raise ValidationError(f"Body is not valid JSON: {e}") from e

    if not isinstance(body, dict):
        raise ValidationError("Body must be a JSON object")

    return body


def new_event_id() -> str:
    """Internal identifier for an accepted event."""
    return f"evt_{uuid.uuid4().hex}"


class IPipeline(Protocol):
    """End-to-end handling of one inbound event."""

    async def accept(self, event: InboundEvent) -> Acceptance:
        """Authenticate, validate and deduplicate; schedule forwarding."""
        ...

    async def drain(self) -> None:
        """Wait for all in-flight forwards to finish."""
        ...


class Pipeline:
    """Acknowledges the caller once the event is authenticated and fresh.

    Forwarding runs in a separately spawned task that the caller never waits
    on and cannot cancel; its result only reaches the outcome store and logs.
    """

    def __init__(
        self,
        verifier: ISignatureVerifier,
        inbound_secret: InboundSecret,
        replay_guard: IReplayGuard,
        forwarder: DestinationForwarder,
        recorder: IOutcomeRecorder,
        clock: IClock,
    ):
        self._verifier = verifier
        self._inbound_secret = inbound_secret
        self._replay_guard = replay_guard
        self._forwarder = forwarder
        self._recorder = recorder
        self._clock = clock
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        """Number of forwards still running."""
        return len(self._tasks)

    async def accept(self, event: InboundEvent) -> Acceptance:
        """Authenticate, validate and deduplicate; schedule forwarding.

        Raises AuthenticationError or ValidationError for requests that must
        be rejected synchronously.
        """
        verification = self._verifier.verify(
            self._inbound_secret,
            event.path,
            event.raw_body,
            event.signature,
            event.timestamp,
            self._clock.now(),
        )
        if not verification.accepted:
            reason = verification.reason.value
            logger.warning(
                "Webhook rejected: %s",
                reason,
                extra={"context": {"path": event.path, "reason": reason}},
            )
            raise AuthenticationError(reason)

        body = parse_body(event)

        fingerprint = fingerprint_for(
            event.path, event.raw_body, body, event.idempotency_key
        )
        if await self._replay_guard.check_and_record(fingerprint) is ReplayDecision.DUPLICATE:
            return Acceptance(status=AcceptanceStatus.DUPLICATE)

        internal_event_id = new_event_id()
        logger.info(
            "Webhook accepted",
            extra={
                "context": {
                    "internal_event_id": internal_event_id,
                    "correlation_id": event.correlation_id,
                }
            },
        )
        self._spawn(body, internal_event_id, event.correlation_id)
        return Acceptance(
            status=AcceptanceStatus.ACCEPTED, internal_event_id=internal_event_id
        )

    async def drain(self) -> None:
        """Wait for all in-flight forwards to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(
        self, body: dict[str, Any], internal_event_id: str, correlation_id: str | None
    ) -> None:
        task = asyncio.create_task(
            self._forward(body, internal_event_id, correlation_id),
            name=f"forward-{internal_event_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Forward task %s cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Forward task %s crashed: %s", task.get_name(), exc, exc_info=exc
            )

    async def _forward(
        self, body: dict[str, Any], internal_event_id: str, correlation_id: str | None
    ) -> None:
        async def on_attempt(attempt: RetryAttempt) -> None:
            await self._recorder.record_attempt(
                internal_event_id, attempt.ordinal, correlation_id
            )

        await self._recorder.record_received(internal_event_id, correlation_id)

        try:
            result = await self._forwarder.forward(
                body, internal_event_id, correlation_id, on_attempt
            )
        except ConfigurationError as e:
            await self._recorder.record_failure(
                internal_event_id,
                "configuration_error",
                str(e),
                correlation_id=correlation_id,
            )
            return
        except Exception as e:
            logger.exception("Forward handler error for %s", internal_event_id)
            await self._recorder.record_failure(
                internal_event_id,
                "handler_error",
                str(e) or type(e).__name__,
                correlation_id=correlation_id,
            )
            return

        if result.ok:
            await self._recorder.record_success(
                internal_event_id,
                correlation_id=correlation_id,
                response_status=result.status,
                retry_count=result.retry_count,
            )
            return

        await self._recorder.record_failure(
            internal_event_id,
            f"forward_failed_{result.status or 'unknown'}",
            f"destination forward failed: status={result.status} "
            f"state={result.state.value} error={result.error}",
            retry_count=result.retry_count,
            correlation_id=correlation_id,
            response_status=result.status or None,
        )
