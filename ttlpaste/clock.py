from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


def to_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to timezone-aware UTC.

    Naive values are assumed to already be UTC (this is what SQLite hands
    back for ``DateTime(timezone=True)`` columns).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def from_epoch_ms(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=timezone.utc)


class Clock(Protocol):
    """Source of "now" for the paste engine."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock used in production wiring."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Always returns the same instant."""

    def __init__(self, instant: datetime) -> None:
        self._instant = to_utc(instant)

    def now(self) -> datetime:
        return self._instant

    @classmethod
    def from_epoch_ms(cls, epoch_ms: int) -> "FixedClock":
        return cls(from_epoch_ms(epoch_ms))


class ManualClock:
    """
    Virtual clock for tests: starts at a given instant and only moves when
    ``advance`` or ``set`` is called.
    """

    def __init__(self, start: datetime) -> None:
        self._current = to_utc(start)

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 0.0) -> datetime:
        self._current = self._current + timedelta(seconds=seconds)
        return self._current

    def set(self, instant: datetime) -> None:
        self._current = to_utc(instant)
