"""
Task reminders (multi-attempt, escalating).

At task creation a small set of reminders is pre-scheduled from a context heuristic: a weekday
creation assumes the person is at work and reminds after work hours; a weekend (or explicit
"weekend" context) reminds during the day. A later due date adds an evening-before and a
due-day-morning reminder. Every reminder row has its own status:

    pending -> sent | failed | skipped | acknowledged

The dispatch pass only picks up pending rows whose scheduled time has passed. It claims a row
with a conditional update on (status, dispatch_attempts) before sending, so two overlapping
runs cannot both send it. A failed send keeps the row pending for the next run until
task_max_dispatch_attempts is reached, then marks it failed.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from familynotify.config import settings
from familynotify.core.clock import ensure_utc, local_tz, to_local, utcnow
from familynotify.core.constants import TASK_REMINDERS_PER_RUN
from familynotify.core.errors import TransientDispatchError
from familynotify.models.task_reminder import TaskReminder
from familynotify.services.preferences import TASKS, Candidate, allowed
from familynotify.services.triggers.base import FILTERED, SENT, SKIPPED, RunReport, TriggerContext, deliver

logger = logging.getLogger(__name__)

CATEGORY = "tasks"

# (local time, context reason, attempt number)
WORKDAY_SCHEDULE = (
    (time(16, 30), "End of work day reminder", 1),
    (time(18, 30), "Evening follow-up", 2),
    (time(19, 30), "Final evening reminder", 3),
)
DAYTIME_SCHEDULE = (
    (time(10, 0), "Morning reminder", 1),
    (time(15, 0), "Afternoon follow-up", 2),
)
DUE_EVE = (time(20, 0), "Due tomorrow - evening reminder", 1)
DUE_MORNING = (time(9, 0), "Due today - morning reminder", 2)
SNOOZE_REASON = "Snoozed reminder"

CLOSED_STATUSES = ("completed", "archived")


def plan_reminders(
    created_at: datetime,
    *,
    due_date: date | None = None,
    due_context: str | None = None,
    now: datetime | None = None,
) -> list[tuple[datetime, str, int]]:
    """(scheduled_for UTC, context_reason, attempt_number) for a new task; past times dropped."""
    now = ensure_utc(now) or utcnow()
    tz = local_tz()
    created_local = to_local(created_at)
    created_day = created_local.date()
    is_weekday = created_local.isoweekday() <= 5
    weekend_context = bool(due_context) and "weekend" in due_context.lower()

    plan = []
    schedule = WORKDAY_SCHEDULE if is_weekday and not weekend_context else DAYTIME_SCHEDULE
    for at, reason, attempt in schedule:
        plan.append((datetime.combine(created_day, at, tzinfo=tz), reason, attempt))
    if due_date is not None and due_date > created_day:
        eve_at, eve_reason, eve_attempt = DUE_EVE
        morning_at, morning_reason, morning_attempt = DUE_MORNING
        plan.append((datetime.combine(due_date - timedelta(days=1), eve_at, tzinfo=tz), eve_reason, eve_attempt))
        plan.append((datetime.combine(due_date, morning_at, tzinfo=tz), morning_reason, morning_attempt))
    return [(ensure_utc(at), reason, attempt) for at, reason, attempt in plan if ensure_utc(at) > now]


def schedule_smart_reminders(
    db: Session,
    *,
    task_id: str,
    user_id: str,
    title: str,
    created_at: datetime | None = None,
    due_date: date | None = None,
    due_context: str | None = None,
    urgency: str | None = None,
    assignee_name: str | None = None,
    category_emoji: str | None = None,
    now: datetime | None = None,
) -> list[TaskReminder]:
    now = ensure_utc(now) or utcnow()
    created_at = ensure_utc(created_at) or now
    rows = [
        TaskReminder(
            task_id=task_id,
            user_id=user_id,
            scheduled_for=at,
            context_reason=reason,
            attempt_number=attempt,
            status="pending",
            task_title=title,
            task_urgency=urgency,
            assignee_name=assignee_name,
            category_emoji=category_emoji,
            dispatch_attempts=0,
        )
        for at, reason, attempt in plan_reminders(created_at, due_date=due_date, due_context=due_context, now=now)
    ]
    db.add_all(rows)
    db.commit()
    logger.info("Scheduled %s reminder(s) for task %s", len(rows), task_id)
    return rows


def _pending(db: Session, task_id: str):
    return db.query(TaskReminder).filter(TaskReminder.task_id == task_id, TaskReminder.status == "pending")


def on_task_status_changed(
    db: Session,
    *,
    task_id: str,
    status: str,
    snoozed_until: datetime | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Keep reminder rows in step with the task:
    completed/archived -> pending become skipped; in_progress -> acknowledged;
    snoozed -> pending become skipped and one new reminder is scheduled at snoozed_until.
    """
    now = ensure_utc(now) or utcnow()
    status = (status or "").strip().lower()
    result = {"task_id": task_id, "status": status, "skipped": 0, "acknowledged": 0, "scheduled": 0}

    if status in CLOSED_STATUSES:
        result["skipped"] = _pending(db, task_id).update({TaskReminder.status: "skipped"}, synchronize_session=False)
    elif status == "in_progress":
        result["acknowledged"] = _pending(db, task_id).update(
            {TaskReminder.status: "acknowledged", TaskReminder.acknowledged_at: now}, synchronize_session=False
        )
    elif status == "snoozed":
        template = (
            db.query(TaskReminder)
            .filter(TaskReminder.task_id == task_id)
            .order_by(TaskReminder.created_at.desc(), TaskReminder.id.desc())
            .first()
        )
        result["skipped"] = _pending(db, task_id).update({TaskReminder.status: "skipped"}, synchronize_session=False)
        if snoozed_until is None:
            logger.warning("Task %s snoozed without snoozed_until; no reminder scheduled", task_id)
        elif template is None:
            logger.warning("Task %s snoozed but has no reminder history to copy; no reminder scheduled", task_id)
        else:
            db.add(
                TaskReminder(
                    task_id=task_id,
                    user_id=template.user_id,
                    scheduled_for=ensure_utc(snoozed_until),
                    context_reason=SNOOZE_REASON,
                    attempt_number=1,
                    status="pending",
                    task_title=template.task_title,
                    task_urgency=template.task_urgency,
                    assignee_name=template.assignee_name,
                    category_emoji=template.category_emoji,
                    dispatch_attempts=0,
                )
            )
            result["scheduled"] = 1
    db.commit()
    logger.info("Task %s -> %s: %s", task_id, status, result)
    return result


def task_message(reminder: TaskReminder) -> tuple[str, str]:
    """Copy escalates with the attempt number."""
    title, body = "Task Reminder", reminder.task_title
    if reminder.attempt_number <= 1:
        reason = reminder.context_reason or "Task Reminder"
        title = f"{reminder.category_emoji} {reason}" if reminder.category_emoji else reason
    elif reminder.attempt_number == 2:
        title = "Still pending..."
        body = f"Don't forget: {reminder.task_title}"
    else:
        title = "Final reminder!"
        body = f"{reminder.task_title} - Tap to mark done or snooze"
    if reminder.assignee_name:
        body = f"{reminder.assignee_name}: {body}"
    if reminder.task_urgency == "urgent":
        title = f"🚨 {title}"
    elif reminder.task_urgency == "high":
        title = f"⚠️ {title}"
    return title, body


def _claim(db: Session, reminder_id: int, attempts_before: int) -> bool:
    """Count this dispatch attempt; fails when another run already claimed the same attempt."""
    claimed = (
        db.query(TaskReminder)
        .filter(
            TaskReminder.id == reminder_id,
            TaskReminder.status == "pending",
            TaskReminder.dispatch_attempts == attempts_before,
        )
        .update({TaskReminder.dispatch_attempts: attempts_before + 1}, synchronize_session=False)
    )
    db.commit()
    return claimed > 0


def _set_status(db: Session, reminder_id: int, **values) -> None:
    db.query(TaskReminder).filter(TaskReminder.id == reminder_id).update(values, synchronize_session=False)
    db.commit()


def run_task_reminders(ctx: TriggerContext, report: RunReport) -> None:
    db = ctx.db
    due = (
        db.query(TaskReminder)
        .filter(TaskReminder.status == "pending", TaskReminder.scheduled_for <= ctx.now)
        .order_by(TaskReminder.scheduled_for.asc(), TaskReminder.id.asc())
        .limit(TASK_REMINDERS_PER_RUN)
        .all()
    )
    report.stats["due_reminders"] = len(due)
    if not due:
        logger.debug("No pending task reminders due")
        return

    prefs = ctx.preferences.get_many(r.user_id for r in due)
    max_attempts = max(1, settings.task_max_dispatch_attempts)
    candidate = Candidate(TASKS, subtypes=("task_reminders",))
    for reminder in due:
        if ctx.expired():
            report.timed_out = True
            logger.warning("[%s] run deadline reached; stopping scan", report.trigger)
            return
        key = f"task_reminder:{reminder.id}"
        user_id = reminder.user_id
        with report.attempt(key, user_id):
            if not allowed(prefs[user_id], candidate):
                _set_status(db, reminder.id, status="skipped")
                report.add(FILTERED, key, user_id=user_id)
                continue
            # Build the dispatcher before claiming, so a misconfigured run never spends an attempt
            ctx.ensure_dispatcher()
            attempts_before = reminder.dispatch_attempts or 0
            if not _claim(db, reminder.id, attempts_before):
                report.add(SKIPPED, key, user_id=user_id, detail="claimed by another run")
                continue
            title, body = task_message(reminder)
            try:
                deliver(
                    ctx,
                    user_id=user_id,
                    category=CATEGORY,
                    type="task_reminder",
                    title=title,
                    body=body,
                    data={
                        "task_id": reminder.task_id,
                        "reminder_id": reminder.id,
                        "attempt_number": reminder.attempt_number,
                        "deep_link": f"/tasks?task={reminder.task_id}",
                    },
                )
            except TransientDispatchError as e:
                if attempts_before + 1 >= max_attempts:
                    _set_status(db, reminder.id, status="failed", error_message=str(e))
                else:
                    _set_status(db, reminder.id, error_message=str(e))
                raise
            _set_status(db, reminder.id, status="sent", sent_at=ctx.now, error_message=None)
            report.add(SENT, key, user_id=user_id)
