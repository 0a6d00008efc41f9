"""
Run a trigger driver once: build its context, execute it, and record the run.

Used by the scheduler jobs, POST /triggers/{name}, the calendar change hook and the CLI script.
A run-level error (configuration missing, source feed down) aborts the run: the open transaction
is rolled back and the report says why. Cursors already advanced for earlier candidates stay
committed, since each advance commits on its own.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime

from sqlalchemy.orm import Session

from familynotify.config import settings
from familynotify.core.errors import RUN_ABORTING_ERRORS
from familynotify.services.dispatch import DispatchClient, build_dispatch_client
from familynotify.services.feeds import HttpFeeds
from familynotify.services.preferences import PreferenceSource, SqlPreferenceSource
from familynotify.services.push_tokens import PushTokenRepository
from familynotify.services.triggers.base import Feeds, RecipientDirectory, RunReport, TriggerContext
from familynotify.services.triggers.calendar import FieldChange, broadcast_calendar_change
from familynotify.services.triggers.registry import get_trigger

logger = logging.getLogger(__name__)

CALENDAR_BROADCAST = "calendar_broadcast"


def build_context(
    db: Session,
    *,
    now: datetime | None = None,
    dispatcher: DispatchClient | None = None,
    feeds: Feeds | None = None,
    preferences: PreferenceSource | None = None,
    recipients: RecipientDirectory | None = None,
    timeout_seconds: float | None = None,
) -> TriggerContext:
    timeout = settings.run_timeout_seconds if timeout_seconds is None else timeout_seconds
    return TriggerContext(
        db,
        now=now,
        preferences=preferences or SqlPreferenceSource(db),
        recipients=recipients or PushTokenRepository(db),
        feeds=feeds or HttpFeeds(),
        dispatcher=dispatcher,
        dispatcher_factory=lambda: build_dispatch_client(db),
        deadline=time.monotonic() + timeout if timeout and timeout > 0 else None,
    )


def _execute(db: Session, ctx: TriggerContext, report: RunReport, run) -> RunReport:
    try:
        run(ctx, report)
    except RUN_ABORTING_ERRORS as e:
        db.rollback()
        logger.warning("[%s] run aborted: %s", report.trigger, e)
        report.abort(e)
    except Exception as e:
        db.rollback()
        logger.exception("[%s] run failed", report.trigger)
        report.abort(e)
    report.finish()
    ctx.delivery_log.record_run(report)
    logger.info("[%s] %s", report.trigger, report.summary_line())
    return report


def run_trigger(name: str, db: Session, **context_overrides) -> RunReport:
    """Run one registered driver. Raises KeyError for an unknown name."""
    spec = get_trigger(name)
    ctx = build_context(db, **context_overrides)
    return _execute(db, ctx, RunReport(trigger=spec.name, started_at=ctx.now), spec.run)


def run_calendar_broadcast(
    db: Session,
    *,
    kind: str,
    event,
    actor_id: str,
    changes: list[FieldChange] | None = None,
    **context_overrides,
) -> RunReport:
    """Notify the household about one created/changed/deleted calendar event."""
    ctx = build_context(db, **context_overrides)

    def run(ctx: TriggerContext, report: RunReport) -> None:
        broadcast_calendar_change(ctx, report, kind=kind, event=event, actor_id=actor_id, changes=changes)

    return _execute(db, ctx, RunReport(trigger=CALENDAR_BROADCAST, started_at=ctx.now), run)
