"""
Cursor Store: persisted per-(user, feed) watermarks and once-only reminder marks.

Every write commits before returning: a cursor only counts as advanced once it is durable.
Writes are single-statement upserts keyed on (user_id, feed_key), so two overlapping runs of the
same driver cannot regress a watermark: the late one sees the newer value and becomes a no-op.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from familynotify.core.clock import ensure_utc, utcnow
from familynotify.db.upsert import dialect_insert
from familynotify.models.notification_cursor import NotificationCursor

logger = logging.getLogger(__name__)

REMINDER_KEY_PREFIX = "reminder:"


@dataclass(frozen=True)
class CursorState:
    exists: bool = False
    watermark: datetime | None = None
    item_id: str | None = None
    value: str | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: NotificationCursor) -> "CursorState":
        return cls(
            exists=True,
            watermark=ensure_utc(row.last_watermark),
            item_id=row.last_item_id,
            value=row.last_value,
            updated_at=ensure_utc(row.updated_at),
        )


EMPTY_CURSOR = CursorState()


def reminder_key(domain: str, bucket: str, item_id: str) -> str:
    return f"{REMINDER_KEY_PREFIX}{domain}:{bucket}:{item_id}"


class CursorStore:
    def __init__(self, db: Session):
        self.db = db

    # --- Reads ---

    def get(self, user_id: str, feed_key: str) -> CursorState:
        row = (
            self.db.query(NotificationCursor)
            .filter(NotificationCursor.user_id == user_id, NotificationCursor.feed_key == feed_key)
            .first()
        )
        return CursorState.from_row(row) if row else EMPTY_CURSOR

    def get_many(self, user_ids: Iterable[str], feed_key: str) -> dict[str, CursorState]:
        ids = list(user_ids)
        if not ids:
            return {}
        rows = (
            self.db.query(NotificationCursor)
            .filter(NotificationCursor.user_id.in_(ids), NotificationCursor.feed_key == feed_key)
            .all()
        )
        found = {r.user_id: CursorState.from_row(r) for r in rows}
        return {uid: found.get(uid, EMPTY_CURSOR) for uid in ids}

    def list_for_user(self, user_id: str) -> list[dict]:
        rows = (
            self.db.query(NotificationCursor)
            .filter(NotificationCursor.user_id == user_id)
            .order_by(NotificationCursor.feed_key.asc())
            .all()
        )
        return [
            {
                "feed_key": r.feed_key,
                "last_watermark": ensure_utc(r.last_watermark).isoformat() if r.last_watermark else None,
                "last_item_id": r.last_item_id,
                "last_value": r.last_value,
                "updated_at": ensure_utc(r.updated_at).isoformat() if r.updated_at else None,
            }
            for r in rows
        ]

    # --- Writes ---

    def initialize(
        self,
        user_id: str,
        feed_key: str,
        watermark: datetime | None = None,
        item_id: str | None = None,
        value: str | None = None,
    ) -> bool:
        """Create the cursor if absent (first-run policy). Returns True if this call created it."""
        insert = dialect_insert(self.db)
        stmt = (
            insert(NotificationCursor)
            .values(
                user_id=user_id,
                feed_key=feed_key,
                last_watermark=ensure_utc(watermark),
                last_item_id=item_id,
                last_value=value,
                updated_at=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["user_id", "feed_key"])
        )
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount > 0

    def advance(self, user_id: str, feed_key: str, watermark: datetime, item_id: str | None = None) -> bool:
        """
        Move the watermark forward to the newest dispatched item's own (timestamp, id) position.
        Only applies when the stored position is missing or strictly older; returns False when a
        concurrent run already advanced to this point or beyond. Items sharing one timestamp are
        ordered by id, so a batch cut between them resumes at the next id.
        """
        insert = dialect_insert(self.db)
        stmt = insert(NotificationCursor).values(
            user_id=user_id,
            feed_key=feed_key,
            last_watermark=ensure_utc(watermark),
            last_item_id=item_id,
            updated_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "feed_key"],
            set_={
                "last_watermark": stmt.excluded.last_watermark,
                "last_item_id": stmt.excluded.last_item_id,
                "updated_at": stmt.excluded.updated_at,
            },
            where=or_(
                NotificationCursor.last_watermark.is_(None),
                NotificationCursor.last_watermark < stmt.excluded.last_watermark,
                and_(
                    NotificationCursor.last_watermark == stmt.excluded.last_watermark,
                    NotificationCursor.last_item_id.is_not(None),
                    NotificationCursor.last_item_id < stmt.excluded.last_item_id,
                ),
            ),
        )
        result = self.db.execute(stmt)
        self.db.commit()
        applied = result.rowcount > 0
        if not applied:
            logger.info("Cursor %s/%s already at or past %s; not advanced", user_id, feed_key, watermark)
        return applied

    def compare_and_set_value(self, user_id: str, feed_key: str, expected: str | None, new: str) -> bool:
        """State-diff CAS: set last_value to new only if it still equals expected."""
        if expected is None:
            return self.initialize(user_id, feed_key, value=new)
        updated = (
            self.db.query(NotificationCursor)
            .filter(
                NotificationCursor.user_id == user_id,
                NotificationCursor.feed_key == feed_key,
                NotificationCursor.last_value == expected,
            )
            .update(
                {NotificationCursor.last_value: new, NotificationCursor.updated_at: utcnow()},
                synchronize_session=False,
            )
        )
        self.db.commit()
        if not updated:
            logger.info("Cursor %s/%s changed concurrently (expected %s); not set to %s", user_id, feed_key, expected, new)
        return updated > 0

    # --- Once-only reminder marks: one row per (user, domain, bucket, item) ---

    def was_reminded(self, user_id: str, domain: str, bucket: str, item_id: str) -> bool:
        return self.get(user_id, reminder_key(domain, bucket, item_id)).exists

    def mark_reminded(self, user_id: str, domain: str, bucket: str, item_id: str, at: datetime | None = None) -> bool:
        return self.initialize(user_id, reminder_key(domain, bucket, item_id), watermark=at or utcnow(), item_id=item_id)

    # --- Admin / retention ---

    def reset(self, user_id: str, feed_key: str | None = None) -> int:
        """Clear a user's cursor for one feed (or all feeds) so the next run starts from scratch."""
        q = self.db.query(NotificationCursor).filter(NotificationCursor.user_id == user_id)
        if feed_key:
            q = q.filter(NotificationCursor.feed_key == feed_key)
        deleted = q.delete(synchronize_session=False)
        self.db.commit()
        logger.info("Reset %s cursor row(s) for user %s (feed=%s)", deleted, user_id, feed_key or "*")
        return deleted

    def prune_reminder_marks(self, older_than: datetime) -> int:
        deleted = (
            self.db.query(NotificationCursor)
            .filter(
                NotificationCursor.feed_key.like(f"{REMINDER_KEY_PREFIX}%"),
                NotificationCursor.updated_at < ensure_utc(older_than),
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted
