"""Outcome recording for forwarded events."""

from typing import Protocol

from .clock import IClock, utc_datetime
from .logging_config import get_logger
from .models import OutcomeRecord, OutcomeStatus
from .storage import IStorage

logger = get_logger(__name__)

DEFAULT_RETENTION_SECONDS = 86400 * 7


class IOutcomeRecorder(Protocol):
    """Per-event status for audit and replay."""

    async def record_received(
        self, event_id: str, correlation_id: str | None = None
    ) -> None:
        """Mark an accepted event as queued for forwarding."""
        ...

    async def record_attempt(
        self, event_id: str, attempt: int, correlation_id: str | None = None
    ) -> None:
        """Mark an event as being forwarded."""
        ...

    async def record_success(
        self,
        event_id: str,
        correlation_id: str | None = None,
        response_status: int = 200,
        retry_count: int = 0,
    ) -> None:
        """Mark an event as forwarded."""
        ...

    async def record_failure(
        self,
        event_id: str,
        error_code: str,
        error_message: str,
        retry_count: int = 0,
        correlation_id: str | None = None,
        response_status: int | None = None,
        terminal: bool = True,
    ) -> None:
        """Record a forwarding failure."""
        ...


class OutcomeRecorder:
    """Upserts OutcomeRecords into Storage.

    Recording sits on the observability path: storage errors are logged and
    never propagate to the caller.
    """

    def __init__(
        self,
        storage: IStorage,
        clock: IClock,
        env: str,
        service_role: str,
        retention_seconds: int = DEFAULT_RETENTION_SECONDS,
    ):
        self._storage = storage
        self._clock = clock
        self._env = env
        self._service_role = service_role
        self._retention = retention_seconds

    def _record(self, event_id: str, status: OutcomeStatus, **fields) -> OutcomeRecord:
        return OutcomeRecord(
            event_id=event_id,
            status=status,
            timestamp=utc_datetime(self._clock),
            env=self._env,
            service_role=self._service_role,
            **fields,
        )

    async def _save(self, record: OutcomeRecord) -> None:
        try:
            await self._storage.upsert_outcome(record)
        except Exception as e:
            logger.warning("Failed to record outcome for %s: %s", record.event_id, e)

    async def record_received(
        self, event_id: str, correlation_id: str | None = None
    ) -> None:
        """Mark an accepted event as queued for forwarding."""
        await self._save(
            self._record(
                event_id, OutcomeStatus.RECEIVED, correlation_id=correlation_id
            )
        )

    async def record_attempt(
        self, event_id: str, attempt: int, correlation_id: str | None = None
    ) -> None:
        """Mark an event as being forwarded; ``attempt`` is 1-based."""
        await self._save(
            self._record(
                event_id,
                OutcomeStatus.PROCESSING,
                retry_count=max(attempt - 1, 0),
                correlation_id=correlation_id,
            )
        )

    async def record_success(
        self,
        event_id: str,
        correlation_id: str | None = None,
        response_status: int = 200,
        retry_count: int = 0,
    ) -> None:
        """Mark an event as forwarded."""
        await self._save(
            self._record(
                event_id,
                OutcomeStatus.SUCCESS,
                retry_count=retry_count,
                response_status=response_status,
                correlation_id=correlation_id,
            )
        )

    async def record_failure(
        self,
        event_id: str,
        error_code: str,
        error_message: str,
        retry_count: int = 0,
        correlation_id: str | None = None,
        response_status: int | None = None,
        terminal: bool = True,
    ) -> None:
        """Record a forwarding failure and emit a structured error log."""
        await self._save(
            self._record(
                event_id,
                OutcomeStatus.FAILED if terminal else OutcomeStatus.PROCESSING,
                error_code=error_code,
                error_message=error_message,
                retry_count=retry_count,
                response_status=response_status,
                correlation_id=correlation_id,
            )
        )

        logger.error(
            "webhook_failure",
            extra={
                "context": {
                    "event_id": event_id,
                    "env": self._env,
                    "error_code": error_code,
                    "error_message": error_message,
                    "retry_count": retry_count,
                    "correlation_id": correlation_id,
                    "response_status": response_status,
                }
            },
        )

    async def get_event(self, event_id: str) -> OutcomeRecord | None:
        """Retrieve an outcome record for replay validation."""
        try:
            return await self._storage.get_outcome(event_id)
        except Exception as e:
            logger.warning("Failed to retrieve outcome for %s: %s", event_id, e)
            return None

    async def list_events(
        self,
        env: str,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[OutcomeRecord], int]:
        """Page of outcome records plus the total matching count."""
        events = await self._storage.list_outcomes(
            env=env, status=status, limit=limit, offset=offset
        )
        total = await self._storage.count_outcomes(env=env, status=status)
        return events, total

    async def purge_expired(self) -> int:
        """Drop outcome records older than the retention window."""
        return await self._storage.purge_outcomes(self._clock.now() - self._retention)
