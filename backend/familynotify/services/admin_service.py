"""
Admin: cursor resets, retention pruning, and a full reset of engine state.
Tables: notification_cursors, change_events, delivery_log (see familynotify.db.tables).
Preferences and push tokens are never touched here.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from familynotify.config import settings
from familynotify.core.clock import ensure_utc, utcnow
from familynotify.db.tables import ENGINE_STATE_TABLE_NAMES
from familynotify.models.change_event import ChangeEvent
from familynotify.models.delivery_log import DeliveryLogEntry
from familynotify.models.notification_cursor import NotificationCursor
from familynotify.services.cursor_store import CursorStore
from familynotify.services.debounce import ChangeEventLog
from familynotify.services.delivery_log import DeliveryLog

logger = logging.getLogger(__name__)


def reset_cursor(db: Session, user_id: str, feed_key: str | None = None) -> dict:
    """
    ResetCursor: clear a user's watermark for one feed (or every feed and reminder mark when no
    feed_key) so the next run re-evaluates from scratch under the first-run policy.
    """
    deleted = CursorStore(db).reset(user_id, feed_key)
    return {"ok": True, "user_id": user_id, "feed_key": feed_key, "deleted": deleted}


def prune_retention(db: Session, now: datetime | None = None) -> dict[str, int]:
    """Drop reminder marks, delivery log rows and change events past their retention."""
    now = ensure_utc(now) or utcnow()
    quiet = timedelta(minutes=settings.shopping_quiet_period_minutes)
    pruned = {
        "reminder_marks": CursorStore(db).prune_reminder_marks(now - timedelta(days=settings.reminder_mark_retention_days)),
        "delivery_log": DeliveryLog(db).prune(now - timedelta(days=settings.delivery_log_retention_days)),
        "change_events": ChangeEventLog(db).prune(now - 2 * quiet),
    }
    logger.info("prune_retention: %s", pruned)
    return pruned


def reset_engine_state(db: Session) -> dict:
    """
    Full reset: every cursor, pending change event and delivery log row. The next run of each
    driver starts from the first-run policy. Uses TRUNCATE when possible; falls back to DELETE.
    """
    logger.info("reset_engine_state: starting (full reset)")
    result: dict = {"ok": True, "cleared": list(ENGINE_STATE_TABLE_NAMES), "method": "truncate"}
    try:
        # TRUNCATE is PostgreSQL-only; SQLite (tests, local) takes the DELETE path
        if db.get_bind().dialect.name != "postgresql":
            raise SQLAlchemyError("TRUNCATE not supported on this dialect")
        tables = ", ".join(ENGINE_STATE_TABLE_NAMES)
        db.execute(text(f"TRUNCATE TABLE {tables} RESTART IDENTITY CASCADE"))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("reset_engine_state: TRUNCATE unavailable (%s), using DELETE", e)
        db.query(NotificationCursor).delete()
        db.query(ChangeEvent).delete()
        db.query(DeliveryLogEntry).delete()
        db.commit()
        result["method"] = "delete"
    logger.info("reset_engine_state: done (%s)", result["method"])
    return result
