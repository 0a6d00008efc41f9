"""
Preference Filter: one pure predicate deciding whether a user wants a candidate notification.

Opt-out model: a missing row, or a switch that was never set (None), means allowed. An explicit
False anywhere in the chain master -> domain -> subtype vetoes regardless of lower levels.
Modifiers run last: spoiler-free vetoes spoiler-flagged items, and candidates about a favorite
entity only pass for users whose favorite matches.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from familynotify.models.notification_preference import NotificationPreference

logger = logging.getLogger(__name__)

# Domains and their switch column (<domain>_enabled)
CALENDAR = "calendar"
MOTORSPORT = "motorsport"
SHOPPING = "shopping"
ROUTINES = "routines"
TASKS = "tasks"
BINS = "bins"
CHORES = "chores"

# News category -> subtype switch. Unknown categories ("other") always pass.
NEWS_CATEGORY_SWITCHES = {
    "race": "motorsport_news_race_category",
    "driver": "motorsport_news_driver_category",
    "technical": "motorsport_news_technical_category",
    "calendar": "motorsport_news_calendar_category",
}


class PreferenceSet(BaseModel):
    """Typed snapshot of one user's notification settings. None = never set."""

    model_config = ConfigDict(from_attributes=True)

    user_id: Optional[str] = None
    enabled: Optional[bool] = None

    calendar_enabled: Optional[bool] = None
    calendar_reminder_15m: Optional[bool] = None
    calendar_reminder_30m: Optional[bool] = None
    calendar_reminder_1h: Optional[bool] = None
    calendar_reminder_1d: Optional[bool] = None
    calendar_event_created: Optional[bool] = None
    calendar_event_changed: Optional[bool] = None
    calendar_event_deleted: Optional[bool] = None
    calendar_notify_own_changes: Optional[bool] = None

    motorsport_enabled: Optional[bool] = None
    motorsport_news_enabled: Optional[bool] = None
    motorsport_news_ai_curated: Optional[bool] = None
    motorsport_spoiler_free: Optional[bool] = None
    motorsport_news_race_category: Optional[bool] = None
    motorsport_news_driver_category: Optional[bool] = None
    motorsport_news_technical_category: Optional[bool] = None
    motorsport_news_calendar_category: Optional[bool] = None
    motorsport_race_reminder_15m: Optional[bool] = None
    motorsport_race_reminder_1h: Optional[bool] = None
    motorsport_race_reminder_1d: Optional[bool] = None
    motorsport_quali_reminder: Optional[bool] = None
    motorsport_sprint_reminder: Optional[bool] = None
    motorsport_practice_reminder: Optional[bool] = None
    motorsport_championship_updates: Optional[bool] = None
    motorsport_favorite_win: Optional[bool] = None
    motorsport_favorite_driver: Optional[str] = None

    shopping_enabled: Optional[bool] = None
    shopping_list_changes: Optional[bool] = None
    shopping_notify_own_changes: Optional[bool] = None

    routines_enabled: Optional[bool] = None
    routine_start_reminder: Optional[bool] = None

    tasks_enabled: Optional[bool] = None
    task_reminders: Optional[bool] = None

    bins_enabled: Optional[bool] = None
    bin_day_reminder: Optional[bool] = None

    chores_enabled: Optional[bool] = None
    chore_daily_digest: Optional[bool] = None

    @property
    def favorite_driver(self) -> Optional[str]:
        value = (self.motorsport_favorite_driver or "").strip()
        return value or None


@dataclass(frozen=True)
class Candidate:
    """What a driver is about to send, in the terms the filter needs."""

    domain: str
    subtypes: tuple[str, ...] = ()
    spoiler: bool = False
    category: Optional[str] = None
    # Set only when the candidate is about a favorite: the entity's id and/or display names
    favorite_entity: Optional[tuple[str, ...]] = None


def _switch_on(prefs: PreferenceSet, field: str) -> bool:
    if field not in PreferenceSet.model_fields:
        raise KeyError(f"Unknown preference switch: {field}")
    return getattr(prefs, field) is not False


def _same_entity(a: str, b: str) -> bool:
    return a.strip().casefold() == b.strip().casefold()


def allowed(prefs: Optional[PreferenceSet], candidate: Candidate) -> bool:
    if prefs is None:
        return True
    if prefs.enabled is False:
        return False
    if not _switch_on(prefs, f"{candidate.domain}_enabled"):
        return False
    for subtype in candidate.subtypes:
        if not _switch_on(prefs, subtype):
            return False
    if candidate.spoiler and prefs.motorsport_spoiler_free is True:
        return False
    if candidate.category is not None and not wants_news_category(prefs, candidate.category):
        return False
    if candidate.favorite_entity is not None:
        favorite = prefs.favorite_driver
        if favorite is None or not any(_same_entity(favorite, name) for name in candidate.favorite_entity):
            return False
    return True


def wants_news_category(prefs: PreferenceSet, category: Optional[str]) -> bool:
    """Category sub-filter; AI-curated mode turns it off entirely."""
    if prefs.motorsport_news_ai_curated is True:
        return True
    field = NEWS_CATEGORY_SWITCHES.get((category or "").strip().lower())
    if field is None:
        return True
    return getattr(prefs, field) is not False


def notify_self(prefs: Optional[PreferenceSet], flag: str, *, default: bool) -> bool:
    """Whether the author of a change also gets notified about it."""
    if prefs is None:
        return default
    value = getattr(prefs, flag)
    return default if value is None else bool(value)


class PreferenceSource(Protocol):
    """Read-only access to user preferences. Missing users come back as an empty PreferenceSet."""

    def get(self, user_id: str) -> PreferenceSet:
        ...

    def get_many(self, user_ids: Iterable[str]) -> dict[str, PreferenceSet]:
        ...


class SqlPreferenceSource:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> PreferenceSet:
        row = self.db.query(NotificationPreference).filter(NotificationPreference.user_id == user_id).first()
        if row is None:
            return PreferenceSet(user_id=user_id)
        return PreferenceSet.model_validate(row)

    def get_many(self, user_ids: Iterable[str]) -> dict[str, PreferenceSet]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        rows = self.db.query(NotificationPreference).filter(NotificationPreference.user_id.in_(ids)).all()
        found = {r.user_id: PreferenceSet.model_validate(r) for r in rows}
        return {uid: found.get(uid) or PreferenceSet(user_id=uid) for uid in ids}
