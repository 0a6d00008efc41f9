"""
Delivery Log: append-only audit of attempted sends plus one cron_execution row per trigger run.

Cross-run dedup is the cursor store's job. The log only suppresses duplicates within one run
(seen), for example the same user resolved twice from overlapping recipient lists.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from familynotify.core.clock import ensure_utc
from familynotify.models.delivery_log import DeliveryLogEntry

logger = logging.getLogger(__name__)

CRON_EXECUTION_CATEGORY = "cron_execution"
OUTCOME_SENT = "sent"
OUTCOME_FAILED = "failed"
OUTCOME_RUN = "run"


class DeliveryLog:
    def __init__(self, db: Session):
        self.db = db
        self._seen: set[tuple[str, str]] = set()

    def seen(self, user_id: str, key: str) -> bool:
        """True if (user, key) was already handled in this run; otherwise remember it."""
        marker = (user_id, key)
        if marker in self._seen:
            return True
        self._seen.add(marker)
        return False

    def record(
        self,
        *,
        user_id: str | None,
        category: str,
        type: str,
        title: str,
        body: str | None = None,
        payload: dict[str, Any] | None = None,
        outcome: str = OUTCOME_SENT,
    ) -> DeliveryLogEntry:
        entry = DeliveryLogEntry(
            user_id=user_id,
            category=category,
            type=type,
            title=title[:256],
            body=body,
            payload=payload or {},
            outcome=outcome,
        )
        self.db.add(entry)
        self.db.commit()
        return entry

    def record_run(self, report) -> DeliveryLogEntry:
        """One row per driver run with its summary, for the cron history view."""
        summary = report.to_dict()
        status = "aborted" if report.aborted else ("timed_out" if report.timed_out else "ok")
        return self.record(
            user_id=None,
            category=CRON_EXECUTION_CATEGORY,
            type=report.trigger,
            title=f"{report.trigger}: {status}",
            body=report.summary_line(),
            payload=summary,
            outcome=OUTCOME_RUN,
        )

    def recent(self, *, limit: int = 50, category: str | None = None, user_id: str | None = None) -> list[dict]:
        q = self.db.query(DeliveryLogEntry)
        if category:
            q = q.filter(DeliveryLogEntry.category == category)
        if user_id:
            q = q.filter(DeliveryLogEntry.user_id == user_id)
        rows = q.order_by(DeliveryLogEntry.created_at.desc(), DeliveryLogEntry.id.desc()).limit(limit).all()
        return [
            {
                "id": r.id,
                "user_id": r.user_id,
                "category": r.category,
                "type": r.type,
                "title": r.title,
                "body": r.body,
                "payload": r.payload,
                "outcome": r.outcome,
                "created_at": ensure_utc(r.created_at).isoformat() if r.created_at else None,
            }
            for r in rows
        ]

    def prune(self, older_than: datetime) -> int:
        deleted = (
            self.db.query(DeliveryLogEntry)
            .filter(DeliveryLogEntry.created_at < ensure_utc(older_than))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted
