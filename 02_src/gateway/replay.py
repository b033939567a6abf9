"""Replay and duplicate protection for inbound events."""

import hashlib
from typing import Any, Protocol

from .clock import IClock
from .logging_config import get_logger
from .models import ReplayDecision
from .storage import IStorage

logger = get_logger(__name__)

DEFAULT_RETENTION_SECONDS = 86400


def fingerprint_for(
    path: str,
    raw_body: bytes,
    body: dict[str, Any],
    idempotency_key: str | None = None,
) -> str:
    """Deduplication key for an inbound event, scoped to its endpoint.

    An explicit idempotency key wins over the provider's own ``id``. Events
    carrying neither are keyed by a digest of the raw body.
    """
    if idempotency_key and idempotency_key.strip():
        key = idempotency_key.strip()
    elif body.get("id") not in (None, ""):
        key = str(body["id"])
    else:
        key = "sha256:" + hashlib.sha256(raw_body).hexdigest()
    return f"{path}:{key}"


class IReplayGuard(Protocol):
    """Durable set of previously accepted event fingerprints."""

    async def check_and_record(self, fingerprint: str) -> ReplayDecision:
        """Atomically record ``fingerprint`` unless already present."""
        ...

    async def purge_expired(self) -> int:
        """Drop fingerprints older than the retention window."""
        ...


class ReplayGuard:
    """Insert-if-absent replay guard backed by Storage."""

    def __init__(
        self,
        storage: IStorage,
        clock: IClock,
        retention_seconds: int = DEFAULT_RETENTION_SECONDS,
    ):
        self._storage = storage
        self._clock = clock
        self._retention = retention_seconds

    async def check_and_record(self, fingerprint: str) -> ReplayDecision:
        """Atomically record ``fingerprint`` unless already present."""
        now = self._clock.now()
        # Expired entries must not block a legitimate re-send
        await self._storage.purge_fingerprints(now - self._retention)

        if await self._storage.insert_fingerprint(fingerprint, now):
            return ReplayDecision.FRESH

        logger.info(
            "Duplicate webhook suppressed",
            extra={"context": {"fingerprint": fingerprint}},
        )
        return ReplayDecision.DUPLICATE

    async def purge_expired(self) -> int:
        """Drop fingerprints older than the retention window."""
        return await self._storage.purge_fingerprints(
            self._clock.now() - self._retention
        )
