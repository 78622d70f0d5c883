"""
DEALROOM Core - Time Source
===========================

Every expiry comparison in the engine reads "now" from an injected clock,
so tests can move time deterministically.

Author: DEALROOM Development Team
Version: 1.0.0
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    """Anything that can tell the current UTC time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """
    Clock that only moves when told to.

    Example:
        clock = ManualClock(datetime(2026, 1, 30, tzinfo=timezone.utc))
        clock.advance(days=20)
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = ensure_utc(start) if start else datetime.now(timezone.utc)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = ensure_utc(value)

    def advance(self, **kwargs) -> datetime:
        """Move forward by a timedelta built from kwargs (days=, minutes=, ...)."""
        delta = timedelta(**kwargs)
        if delta < timedelta(0):
            raise ValueError("ManualClock cannot move backwards")
        with self._lock:
            self._now = self._now + delta
            return self._now


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


__all__ = [
    "Clock",
    "SystemClock",
    "ManualClock",
    "ensure_utc",
]
