"""Registry of trigger drivers. Add new drivers here."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from familynotify.core.constants import (
    BINS_TRIGGER,
    CALENDAR_REMINDERS_TRIGGER,
    CALENDAR_WINDOWS,
    CHORES_TRIGGER,
    MAINTENANCE_TRIGGER,
    NEWS_TRIGGER,
    ROUTINE_WINDOWS,
    ROUTINES_TRIGGER,
    SESSION_WINDOWS,
    SESSIONS_TRIGGER,
    SHOPPING_TRIGGER,
    STANDINGS_TRIGGER,
    TASKS_TRIGGER,
    TRIGGER_INTERVAL_SECONDS,
)
from familynotify.services.triggers.base import RunReport, TriggerContext
from familynotify.services.window_matcher import ReminderWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriggerSpec:
    name: str
    run: Callable[[TriggerContext, RunReport], None]
    interval_seconds: int
    # Reminder windows for time-window drivers; the scheduler checks the cadence against them
    windows: Optional[tuple[ReminderWindow, ...]] = None


_triggers: dict[str, TriggerSpec] = {}


def register(spec: TriggerSpec) -> None:
    _triggers[spec.name] = spec
    logger.debug("Registered trigger: %s", spec.name)


def get_trigger(name: str) -> TriggerSpec:
    """Get trigger by name. Raises KeyError if unknown."""
    if name not in _triggers:
        raise KeyError(f"Unknown trigger: {name}. Available: {list(_triggers.keys())}")
    return _triggers[name]


def list_triggers() -> list[str]:
    return list(_triggers.keys())


def _init_registry() -> None:
    from familynotify.services.triggers.bins import run_bins
    from familynotify.services.triggers.calendar import run_calendar_reminders
    from familynotify.services.triggers.chores import run_chores
    from familynotify.services.triggers.maintenance import run_maintenance
    from familynotify.services.triggers.news import run_news
    from familynotify.services.triggers.routines import run_routines
    from familynotify.services.triggers.sessions import run_sessions
    from familynotify.services.triggers.shopping import run_shopping
    from familynotify.services.triggers.standings import run_standings
    from familynotify.services.triggers.tasks import run_task_reminders

    drivers = (
        (NEWS_TRIGGER, run_news, None),
        (STANDINGS_TRIGGER, run_standings, None),
        (SESSIONS_TRIGGER, run_sessions, SESSION_WINDOWS),
        (CALENDAR_REMINDERS_TRIGGER, run_calendar_reminders, CALENDAR_WINDOWS),
        (ROUTINES_TRIGGER, run_routines, ROUTINE_WINDOWS),
        (TASKS_TRIGGER, run_task_reminders, None),
        (SHOPPING_TRIGGER, run_shopping, None),
        (BINS_TRIGGER, run_bins, None),
        (CHORES_TRIGGER, run_chores, None),
        (MAINTENANCE_TRIGGER, run_maintenance, None),
    )
    for name, run, windows in drivers:
        register(TriggerSpec(name=name, run=run, interval_seconds=TRIGGER_INTERVAL_SECONDS[name], windows=windows))


# Register built-in drivers on first import
_init_registry()
