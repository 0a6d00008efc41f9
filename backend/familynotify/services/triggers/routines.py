"""
Routine start reminders (time-window, every 5 min).

A routine's scheduled_time is a wall-clock time in the household timezone. The "start" window
fires from that time until ten minutes after it, on the days the routine's schedule covers, at
most once per routine per local day.
"""
import logging
from datetime import datetime, timedelta

from familynotify.core.clock import local_tz, to_local
from familynotify.core.constants import ROUTINE_REMINDER_DOMAIN, ROUTINE_STEPS_PREVIEWED, ROUTINE_WINDOWS
from familynotify.services.preferences import ROUTINES, Candidate, allowed
from familynotify.services.triggers.base import (
    FILTERED,
    SENT,
    SKIPPED,
    RunReport,
    TriggerContext,
    deliver,
    stop_if_expired,
)
from familynotify.services.window_matcher import due_windows

logger = logging.getLogger(__name__)

CATEGORY = "routines"

ROUTINE_TYPE_INFO = {
    "morning": ("☀️", "Good morning!"),
    "evening": ("🌙", "Bedtime!"),
}
DEFAULT_TYPE_INFO = ("📋", "It's time!")


def routine_message(routine) -> tuple[str, str]:
    emoji, greeting = ROUTINE_TYPE_INFO.get(routine.type, DEFAULT_TYPE_INFO)
    title = f"{routine.emoji or emoji} {greeting} {routine.title}"
    lines = []
    if routine.member_names:
        lines.append(f"👶 Time for {' & '.join(routine.member_names)}'s routine!")
    if routine.steps:
        preview = " → ".join(f"{s.emoji} {s.title}".strip() for s in routine.steps[:ROUTINE_STEPS_PREVIEWED])
        extra = len(routine.steps) - ROUTINE_STEPS_PREVIEWED
        if extra > 0:
            preview += f" +{extra} more"
        lines.append(preview)
    if routine.points_reward > 0:
        lines.append(f"⭐ {routine.points_reward} stars on completion!")
    return title, "\n".join(lines) or "Tap to start"


def due_occurrences(routine, now: datetime) -> list[str]:
    """Local dates (ISO) whose scheduled start is due now. Yesterday covers windows crossing midnight."""
    today = to_local(now).date()
    occurrences = []
    for day in (today - timedelta(days=1), today):
        if not routine.runs_on(day.isoweekday() % 7):
            continue
        target = datetime.combine(day, routine.scheduled_time, tzinfo=local_tz())
        if due_windows(now, target, ROUTINE_WINDOWS):
            occurrences.append(day.isoformat())
    return occurrences


def run_routines(ctx: TriggerContext, report: RunReport) -> None:
    parsed = ctx.feeds.routines()
    report.add_malformed(parsed.malformed)
    due = [(r, day) for r in parsed.items if r.reminder_enabled for day in due_occurrences(r, ctx.now)]
    report.stats["due_reminders"] = len(due)
    if not due:
        logger.debug("No routines due to start")
        return

    holders = set(ctx.recipients.recipient_ids())
    prefs = ctx.preferences.get_many(r.user_id for r, _ in due)
    window = ROUTINE_WINDOWS[0]
    for routine, day in due:
        if stop_if_expired(ctx, report):
            return
        item_id = f"{routine.id}@{day}"
        key = f"routine:{item_id}"
        owner = routine.user_id
        with report.attempt(key, owner):
            if owner not in holders:
                report.add(SKIPPED, key, user_id=owner, detail="no delivery channel")
                continue
            if not allowed(prefs[owner], Candidate(ROUTINES, subtypes=("routine_start_reminder",))):
                report.add(FILTERED, key, user_id=owner)
                continue
            if ctx.cursors.was_reminded(owner, ROUTINE_REMINDER_DOMAIN, window.bucket, item_id):
                report.add(SKIPPED, key, user_id=owner, detail="already reminded")
                continue
            title, body = routine_message(routine)
            deliver(
                ctx,
                user_id=owner,
                category=CATEGORY,
                type="routine_reminder",
                title=title,
                body=body,
                data={
                    "routine_id": routine.id,
                    "routine_title": routine.title,
                    "routine_type": routine.type,
                    "deep_link": "/routines",
                },
            )
            ctx.cursors.mark_reminded(owner, ROUTINE_REMINDER_DOMAIN, window.bucket, item_id, at=ctx.now)
            report.add(SENT, key, user_id=owner)
