"""Clock sources."""

import time
from datetime import datetime, timezone
from typing import Protocol


class IClock(Protocol):
    """Supplies current Unix time."""

    def now(self) -> float:
        """Current Unix time in seconds."""
        ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> float:
        return time.time()


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, at: float = 1_700_000_000.0):
        self._now = float(at)

    def now(self) -> float:
        return self._now

    def set(self, at: float) -> None:
        self._now = float(at)

    def advance(self, seconds: float) -> None:
        self._now += seconds


def utc_datetime(clock: IClock) -> datetime:
    """Current time of ``clock`` as an aware UTC datetime."""
    return datetime.fromtimestamp(clock.now(), timezone.utc)
