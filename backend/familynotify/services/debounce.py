"""
Debounce aggregator for rapidly edited lists (shopping).

Each run looks at the change events in [now - 2 x quiet, now], groups them per author, and only
commits an author's batch once their newest event is at least `quiet` old. An author still
editing is skipped whole, never partially committed. Committing = deleting the events, so a
batch is consumed by exactly one notification; leftovers past the window expire via prune().
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from sqlalchemy.orm import Session

from familynotify.core.clock import ensure_utc, utcnow
from familynotify.core.constants import SHOPPING_NAMES_LISTED
from familynotify.core.errors import MalformedCandidate
from familynotify.models.change_event import CHANGE_ACTIONS, ChangeEvent

logger = logging.getLogger(__name__)


class ChangeEventLog:
    def __init__(self, db: Session):
        self.db = db

    def record(self, user_id: str, entity_name: str, action: str, occurred_at: datetime | None = None) -> ChangeEvent:
        """Append one raw mutation. Called by the list CRUD right after it writes."""
        action = (action or "").strip().lower()
        if action not in CHANGE_ACTIONS:
            raise MalformedCandidate(f"action must be one of {CHANGE_ACTIONS}, got {action!r}")
        name = (entity_name or "").strip()
        if not user_id or not name:
            raise MalformedCandidate("user_id and entity_name are required")
        event = ChangeEvent(
            user_id=user_id,
            entity_name=name,
            action=action,
            occurred_at=ensure_utc(occurred_at) or utcnow(),
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def fetch_window(self, now: datetime, quiet_period: timedelta) -> list[ChangeEvent]:
        now = ensure_utc(now)
        return (
            self.db.query(ChangeEvent)
            .filter(ChangeEvent.occurred_at >= now - 2 * quiet_period, ChangeEvent.occurred_at <= now)
            .order_by(ChangeEvent.occurred_at.asc(), ChangeEvent.id.asc())
            .all()
        )

    def delete(self, ids: Iterable[int]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        deleted = self.db.query(ChangeEvent).filter(ChangeEvent.id.in_(ids)).delete(synchronize_session=False)
        self.db.commit()
        return deleted

    def prune(self, older_than: datetime) -> int:
        deleted = (
            self.db.query(ChangeEvent)
            .filter(ChangeEvent.occurred_at < ensure_utc(older_than))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if deleted:
            logger.info("Pruned %s expired change event(s) older than %s", deleted, older_than)
        return deleted


@dataclass
class DebounceBatch:
    user_id: str
    events: list = field(default_factory=list)
    newest_at: datetime | None = None
    ready: bool = False

    @property
    def event_ids(self) -> list[int]:
        return [e.id for e in self.events]


def split_batches(events: Sequence, now: datetime, quiet_period: timedelta) -> list[DebounceBatch]:
    """
    Group events per author. A batch is ready when the author's newest event has age >= quiet;
    otherwise the author is still editing and the whole batch waits.
    """
    now = ensure_utc(now)
    by_user: dict[str, list] = defaultdict(list)
    for event in events:
        by_user[event.user_id].append(event)
    batches = []
    for user_id, user_events in by_user.items():
        user_events.sort(key=lambda e: ensure_utc(e.occurred_at))
        newest = ensure_utc(user_events[-1].occurred_at)
        batches.append(
            DebounceBatch(
                user_id=user_id,
                events=user_events,
                newest_at=newest,
                ready=now - newest >= quiet_period,
            )
        )
    batches.sort(key=lambda b: b.newest_at)
    return batches


def _describe(label: str, names: list[str]) -> str:
    if len(names) <= SHOPPING_NAMES_LISTED:
        return f"{label}: {', '.join(names)}"
    return f"{label} {len(names)} items"


def summarize_changes(events: Sequence) -> str:
    """One line per action: names when few, a count when many."""
    parts = []
    for action, label in (("added", "Added"), ("completed", "Completed"), ("removed", "Removed")):
        names = [e.entity_name for e in events if e.action == action]
        if names:
            parts.append(_describe(label, names))
    if parts:
        return "\n".join(parts)
    n = len(events)
    return f"{n} change{'s' if n != 1 else ''}"
