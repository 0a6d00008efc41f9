"""
Reminder Window Matcher: the one place that decides whether a time-window reminder is due.

A window (offset, tolerance) fires for a target time T when
    T - offset - tolerance <= now <= T - offset + tolerance
Both bounds are inclusive. A driver polling every P minutes only sees every window when
P <= 2 * tolerance, which check_polling_interval enforces at job registration.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from familynotify.core.errors import ConfigurationError


@dataclass(frozen=True)
class ReminderWindow:
    bucket: str  # "15m", "1h", "1d", "start", ...; also the once-only mark bucket
    offset: timedelta
    tolerance: timedelta

    def fire_range(self, target: datetime) -> tuple[datetime, datetime]:
        anchor = target - self.offset
        return anchor - self.tolerance, anchor + self.tolerance

    def is_due(self, now: datetime, target: datetime) -> bool:
        start, end = self.fire_range(target)
        return start <= now <= end


def due_windows(now: datetime, target: datetime, windows: Iterable[ReminderWindow]) -> list[ReminderWindow]:
    """All windows of a domain that are due for this target right now."""
    return [w for w in windows if w.is_due(now, target)]


def max_polling_interval(windows: Iterable[ReminderWindow]) -> timedelta:
    """Longest cadence that cannot step over any of these windows."""
    tolerances = [w.tolerance for w in windows]
    if not tolerances:
        raise ValueError("no windows given")
    return 2 * min(tolerances)


def check_polling_interval(windows: Iterable[ReminderWindow], interval: timedelta, *, name: str = "") -> None:
    """Raise ConfigurationError when a driver's cadence could miss a window entirely."""
    windows = list(windows)
    limit = max_polling_interval(windows)
    if interval > limit:
        raise ConfigurationError(
            f"{name or 'driver'} polls every {interval} but its narrowest window needs <= {limit}"
        )


def minutes_until(now: datetime, target: datetime) -> int:
    return round((target - now).total_seconds() / 60)
