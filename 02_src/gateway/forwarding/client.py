"""HTTP forwarding client with bounded retries."""

import asyncio
import random
from typing import Any, Awaitable, Callable, Protocol

import httpx

from ..logging_config import get_logger
from ..models import ForwardResult, ForwardState, RetryAttempt
from .retry import RetryPolicy, format_retry_info, is_retryable, is_success

logger = get_logger(__name__)


AttemptHandler = Callable[[RetryAttempt], Awaitable[None]]
Sleep = Callable[[float], Awaitable[None]]


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


class IForwardingClient(Protocol):
    """Executes one outbound POST under the retry policy."""

    async def send(
        self,
        url: str,
        body: bytes,
        headers: dict[str, str],
        on_attempt: AttemptHandler | None = None,
    ) -> ForwardResult:
        """POST ``body`` until success, terminal failure, or attempts run out."""
        ...


class ForwardingClient:
    """Retrying POST client.

    State machine per call: not_started -> attempting(n) -> succeeded |
    failed_terminal | failed_exhausted. The same body and headers are sent on
    every attempt. ``send`` never raises; every outcome is a ForwardResult.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        policy: RetryPolicy | None = None,
        timeout: float = 10.0,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self._client = http_client
        self._policy = policy or RetryPolicy()
        self._timeout = timeout
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def send(
        self,
        url: str,
        body: bytes,
        headers: dict[str, str],
        on_attempt: AttemptHandler | None = None,
    ) -> ForwardResult:
        """POST ``body`` until success, terminal failure, or attempts run out."""
        history: list[RetryAttempt] = []
        status: int | None = None
        response_body: Any = None
        error: str | None = None

        for attempt in range(1, self._policy.max_attempts + 1):
            error_class: str | None = None
            try:
                response = await self._client.post(
                    url, content=body, headers=headers, timeout=self._timeout
                )
            except httpx.HTTPError as e:
                status = None
                response_body = None
                error_class = type(e).__name__
                error = f"{error_class}: {e}"
            except Exception as e:
                # Request could not be built (bad URL, unencodable header)
                error_class = type(e).__name__
                error = f"{error_class}: {e}"
                record = RetryAttempt(
                    ordinal=attempt,
                    status=None,
                    error_class=error_class,
                    state=ForwardState.FAILED_TERMINAL,
                )
                history.append(record)
                await self._notify(on_attempt, record)
                logger.error("Forward could not be sent: %s", error)
                return ForwardResult(
                    ok=False,
                    status=0,
                    body={"error": error},
                    attempts=attempt,
                    state=ForwardState.FAILED_TERMINAL,
                    error=error,
                    history=history,
                )
            else:
                status = response.status_code
                response_body = _response_body(response)
                error = None if is_success(status) else f"HTTP {status}"

            succeeded = status is not None and is_success(status)
            delay = None
            if (
                not succeeded
                and is_retryable(status)
                and self._policy.can_retry(attempt)
            ):
                delay = self._policy.delay_for(attempt, self._rng)

            if succeeded:
                state = ForwardState.SUCCEEDED
            elif not is_retryable(status):
                state = ForwardState.FAILED_TERMINAL
            elif delay is None:
                state = ForwardState.FAILED_EXHAUSTED
            else:
                state = ForwardState.ATTEMPTING

            record = RetryAttempt(
                ordinal=attempt,
                status=status,
                error_class=error_class,
                delay=delay,
                state=state,
            )
            history.append(record)
            await self._notify(on_attempt, record)

            if succeeded:
                logger.info(
                    "Forward successful: status=%s attempt=%s", status, attempt
                )
                return ForwardResult(
                    ok=True,
                    status=status,
                    body=response_body,
                    attempts=attempt,
                    state=ForwardState.SUCCEEDED,
                    history=history,
                )

            if not is_retryable(status):
                logger.error(
                    "Forward failed (non-retryable): status=%s attempt=%s",
                    status,
                    attempt,
                )
                return ForwardResult(
                    ok=False,
                    status=status or 0,
                    body=response_body,
                    attempts=attempt,
                    state=ForwardState.FAILED_TERMINAL,
                    error=error,
                    history=history,
                )

            if delay is not None:
                logger.warning(
                    "Forward failed, retrying: %s",
                    format_retry_info(attempt, delay, error or "unknown"),
                )
                await self._sleep(delay)

        logger.error(
            "Forward failed after %s attempts: %s", self._policy.max_attempts, error
        )
        return ForwardResult(
            ok=False,
            status=status or 0,
            body=response_body if status is not None else {"error": error},
            attempts=self._policy.max_attempts,
            state=ForwardState.FAILED_EXHAUSTED,
            error=error,
            history=history,
        )

    async def _notify(self, on_attempt: AttemptHandler | None, record: RetryAttempt) -> None:
        if on_attempt is None:
            return
        try:
            await on_attempt(record)
        except Exception:
            logger.exception("Attempt handler failed for attempt %s", record.ordinal)
