"""
Calendar notifications.

run_calendar_reminders (time-window, every 10 min): 15m/30m/1h/1d reminders to the event owner,
once per (owner, event, bucket). All-day events get no timed reminders.

broadcast_calendar_change (fan-out, on demand): created/changed/deleted notices to every user
holding a delivery channel, except the actor unless they explicitly opted into their own changes.
Each recipient is filtered independently and marked once per event revision.
"""
import hashlib
import json
import logging
from typing import Optional

from pydantic import BaseModel

from familynotify.core.clock import format_local_date, format_local_time
from familynotify.core.constants import BROADCAST_DOMAIN, CALENDAR_REMINDER_DOMAIN, CALENDAR_WINDOWS
from familynotify.services.preferences import CALENDAR, Candidate, allowed, notify_self
from familynotify.services.triggers.base import (
    FILTERED,
    SENT,
    SKIPPED,
    RunReport,
    TriggerContext,
    deliver,
    stop_if_expired,
    truncate,
)
from familynotify.services.window_matcher import due_windows, minutes_until

logger = logging.getLogger(__name__)

CATEGORY = "calendar"
BROADCAST_KINDS = ("created", "changed", "deleted")

# First keyword hit wins
EVENT_EMOJIS = (
    (("birthday",), "🎂"),
    (("doctor", "appointment", "dentist", "læge"), "🏥"),
    (("meeting", "møde"), "📅"),
    (("school", "class", "skole"), "🏫"),
    (("playdate", "play date", "playgroup", "legeaftale"), "👶"),
    (("swimming", "pool", "svømme"), "🏊"),
    (("sport", "football", "soccer", "fodbold"), "⚽"),
    (("gym", "workout", "exercise", "fitness"), "💪"),
    (("dinner", "lunch", "restaurant", "middag", "frokost"), "🍽️"),
    (("party", "fest"), "🎉"),
    (("holiday", "vacation", "ferie"), "✈️"),
    (("work", "arbejde"), "💼"),
    (("call", "phone", "opkald"), "📞"),
    (("music", "concert", "musik", "koncert"), "🎵"),
    (("movie", "cinema", "biograf"), "🎬"),
    (("shop", "store", "indkøb"), "🛒"),
    (("wedding", "bryllup"), "💒"),
    (("anniversary", "årsdag"), "💕"),
)

SOURCE_DESCRIPTIONS = {"ai": "✨ Added by AI", "google": "🔄 Synced from Google"}


class FieldChange(BaseModel):
    field: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None


def event_emoji(title: str, description: str | None) -> str:
    text = f"{title} {description or ''}".lower()
    for keywords, emoji in EVENT_EMOJIS:
        if any(k in text for k in keywords):
            return emoji
    return "📌"


def _when(event) -> str:
    if event.all_day:
        return format_local_date(event.start_time)
    return f"{format_local_date(event.start_time)}, {format_local_time(event.start_time)}"


def reminder_message(event, bucket: str, minutes: int) -> tuple[str, str]:
    emoji = event_emoji(event.title, event.description)
    at = format_local_time(event.start_time)
    members = " & ".join(event.member_names)
    if bucket == "15m":
        title = f"{emoji} {event.title} in {minutes} min!"
        lines = [f"🕐 {at}"]
    elif bucket == "30m":
        title = f"{emoji} {event.title} in 30 min"
        lines = [f"🕐 Starting at {at}"]
    elif bucket == "1h":
        title = f"{emoji} {event.title} in 1 hour"
        lines = [f"🕐 {at}" + (f" at {event.location}" if event.location else "")]
        if members:
            lines.append(f"👤 For {members}")
        if event.description:
            lines.append(f"📝 {event.description[:80]}")
        return title, "\n".join(lines)
    else:
        title = f"{emoji} Tomorrow: {event.title}"
        lines = [f"📅 {format_local_date(event.start_time)} at {at}"]
    if event.location:
        lines.append(f"📍 {event.location}")
    if members:
        lines.append(f"👤 {members}")
    return title, "\n".join(lines)


def run_calendar_reminders(ctx: TriggerContext, report: RunReport) -> None:
    parsed = ctx.feeds.calendar_events()
    report.add_malformed(parsed.malformed)
    due = [
        (e, w)
        for e in parsed.items
        if not e.all_day
        for w in due_windows(ctx.now, e.start_time, CALENDAR_WINDOWS)
    ]
    report.stats["due_reminders"] = len(due)
    if not due:
        logger.debug("No calendar events inside a reminder window")
        return

    holders = set(ctx.recipients.recipient_ids())
    prefs = ctx.preferences.get_many(e.user_id for e, _ in due)
    for event, window in due:
        if stop_if_expired(ctx, report):
            return
        key = f"calendar:{event.id}:{window.bucket}"
        owner = event.user_id
        with report.attempt(key, owner):
            if owner not in holders:
                report.add(SKIPPED, key, user_id=owner, detail="no delivery channel")
                continue
            if not allowed(prefs[owner], Candidate(CALENDAR, subtypes=(f"calendar_reminder_{window.bucket}",))):
                report.add(FILTERED, key, user_id=owner)
                continue
            if ctx.cursors.was_reminded(owner, CALENDAR_REMINDER_DOMAIN, window.bucket, event.id):
                report.add(SKIPPED, key, user_id=owner, detail="already reminded")
                continue
            title, body = reminder_message(event, window.bucket, minutes_until(ctx.now, event.start_time))
            deliver(
                ctx,
                user_id=owner,
                category=CATEGORY,
                type=f"event_reminder_{window.bucket}",
                title=title,
                body=body,
                data={
                    "event_id": event.id,
                    "reminder_type": window.bucket,
                    "deep_link": f"/calendar?event={event.id}",
                },
            )
            ctx.cursors.mark_reminded(owner, CALENDAR_REMINDER_DOMAIN, window.bucket, event.id, at=ctx.now)
            report.add(SENT, key, user_id=owner)


# --- Fan-out broadcast ---


def format_field_changes(changes: list[FieldChange]) -> str:
    lines = []
    for change in changes[:3]:
        if change.field == "title":
            lines.append(f"New title: {change.new_value}")
        elif change.field == "start_time":
            lines.append(f"New time: {change.new_value}")
        elif change.field == "location":
            lines.append(f"Location: {change.new_value}" if change.new_value else "Location removed")
        elif change.field == "description":
            lines.append("Description updated")
        else:
            lines.append(f"{change.field} updated")
    if len(changes) > 3:
        lines.append(f"+{len(changes) - 3} more")
    return "\n".join(lines)


def broadcast_message(kind: str, event, changes: list[FieldChange]) -> tuple[str, str]:
    if kind == "created":
        title = f"{event_emoji(event.title, event.description)} {event.title}"
        lines = [SOURCE_DESCRIPTIONS.get(event.source or "", "✅ Event added"), f"📅 {_when(event)}"]
        if event.location:
            lines.append(f"📍 {event.location}")
        if event.member_names:
            lines.append(f"👤 {' & '.join(event.member_names)}")
        if event.description:
            lines.append(f"📝 {truncate(event.description, 63)}")
    elif kind == "changed":
        title = f"✏️ {event.title}"
        lines = [line for line in (format_field_changes(changes), _when(event), event.location) if line]
    else:
        title = "Event Cancelled"
        lines = [event.title, f"Was: {_when(event)}"]
        if event.location:
            lines.append(event.location)
    return title, "\n".join(lines)


def event_revision(kind: str, event, changes: list[FieldChange]) -> str:
    """Stable id of one logical change, so a retried hook call never notifies twice."""
    if kind != "changed":
        return kind
    if event.updated_at is not None:
        return f"changed:{event.updated_at.isoformat()}"
    digest = hashlib.sha256(
        json.dumps([c.model_dump() for c in changes], sort_keys=True, default=str).encode()
    ).hexdigest()[:16]
    return f"changed:{digest}"


def broadcast_calendar_change(
    ctx: TriggerContext,
    report: RunReport,
    *,
    kind: str,
    event,
    actor_id: str,
    changes: list[FieldChange] | None = None,
) -> None:
    if kind not in BROADCAST_KINDS:
        raise ValueError(f"kind must be one of {BROADCAST_KINDS}, got {kind!r}")
    changes = changes or []
    revision = event_revision(kind, event, changes)
    item_id = f"{event.id}@{revision}"
    title, body = broadcast_message(kind, event, changes)
    candidate = Candidate(CALENDAR, subtypes=(f"calendar_event_{kind}",))

    user_ids = ctx.recipients.recipient_ids()
    prefs = ctx.preferences.get_many(user_ids)
    for user_id in user_ids:
        if stop_if_expired(ctx, report):
            return
        key = f"broadcast:{item_id}"
        with report.attempt(key, user_id):
            if ctx.delivery_log.seen(user_id, key):
                continue
            if user_id == actor_id and not notify_self(prefs[user_id], "calendar_notify_own_changes", default=False):
                report.add(FILTERED, key, user_id=user_id, detail="own change")
                continue
            if not allowed(prefs[user_id], candidate):
                report.add(FILTERED, key, user_id=user_id)
                continue
            if ctx.cursors.was_reminded(user_id, BROADCAST_DOMAIN, kind, item_id):
                report.add(SKIPPED, key, user_id=user_id, detail="already notified")
                continue
            deliver(
                ctx,
                user_id=user_id,
                category=CATEGORY,
                type=f"event_{kind}",
                title=title,
                body=body,
                data={
                    "event_id": event.id,
                    "event_title": event.title,
                    "start_time": event.start_time.isoformat(),
                    "deep_link": "/calendar" if kind == "deleted" else f"/calendar?event={event.id}",
                },
            )
            ctx.cursors.mark_reminded(user_id, BROADCAST_DOMAIN, kind, item_id, at=ctx.now)
            report.add(SENT, key, user_id=user_id)
