"""
Motorsport session reminders (time-window, every 10 min).

Each session start is checked against SESSION_WINDOWS (15m/1h/1d before). A reminder fires at
most once per (user, session, window bucket); the once-only mark is written right after a
confirmed send.
"""
import logging

from familynotify.core.clock import format_local_time
from familynotify.core.constants import SESSION_REMINDER_DOMAIN, SESSION_WINDOWS
from familynotify.services.preferences import MOTORSPORT, Candidate, allowed
from familynotify.services.triggers.base import (
    FILTERED,
    SENT,
    SKIPPED,
    RunReport,
    TriggerContext,
    deliver,
    stop_if_expired,
)
from familynotify.services.window_matcher import due_windows, minutes_until

logger = logging.getLogger(__name__)

CATEGORY = "motorsport"

# Session name -> (emoji, display name, session type)
SESSION_INFO = {
    "Race": ("🏁", "RACE", "race"),
    "Qualifying": ("⏱️", "QUALIFYING", "quali"),
    "Sprint": ("⚡", "SPRINT RACE", "sprint"),
    "Sprint Qualifying": ("⚡⏱️", "SPRINT QUALIFYING", "quali"),
    "Sprint Shootout": ("⚡⏱️", "SPRINT SHOOTOUT", "quali"),
    "Practice 1": ("🔧", "FP1", "practice"),
    "Practice 2": ("🔧", "FP2", "practice"),
    "Practice 3": ("🔧", "FP3", "practice"),
}

# Race reminders are governed by the per-window switches alone
SESSION_TYPE_SWITCHES = {
    "quali": "motorsport_quali_reminder",
    "sprint": "motorsport_sprint_reminder",
    "practice": "motorsport_practice_reminder",
}

COUNTRY_FLAGS = {
    "Australia": "🇦🇺", "Austria": "🇦🇹", "Azerbaijan": "🇦🇿", "Bahrain": "🇧🇭",
    "Belgium": "🇧🇪", "Brazil": "🇧🇷", "Canada": "🇨🇦", "China": "🇨🇳",
    "Hungary": "🇭🇺", "Italy": "🇮🇹", "Japan": "🇯🇵", "Mexico": "🇲🇽",
    "Monaco": "🇲🇨", "Netherlands": "🇳🇱", "Qatar": "🇶🇦", "Saudi Arabia": "🇸🇦",
    "Singapore": "🇸🇬", "Spain": "🇪🇸", "UAE": "🇦🇪", "United Kingdom": "🇬🇧",
    "United States": "🇺🇸",
}


def session_info(name: str) -> tuple[str, str, str]:
    return SESSION_INFO.get(name, ("🏎️", name.upper(), "race"))


def session_subtypes(bucket: str, session_type: str) -> tuple[str, ...]:
    subtypes = [f"motorsport_race_reminder_{bucket}"]
    if session_type in SESSION_TYPE_SWITCHES:
        subtypes.append(SESSION_TYPE_SWITCHES[session_type])
    return tuple(subtypes)


def session_message(session, bucket: str, minutes: int, favorite: str | None) -> tuple[str, str]:
    emoji, display, session_type = session_info(session.name)
    flag = COUNTRY_FLAGS.get(session.country or "", "🏎️")
    where = " • ".join(p for p in (session.circuit, format_local_time(session.start_time)) if p)
    if bucket == "15m":
        title = f"{emoji} {display} in {minutes} min"
        body = f"{flag} {session.parent}\n{where}"
    elif bucket == "1h":
        title = f"{emoji} {display} in 1 hour"
        body = f"{flag} {session.parent}\n{where}"
    else:
        title = f"{flag} {display} Tomorrow"
        body = f"{session.parent}\n{where}"
    if favorite:
        if session_type == "race":
            body += f"\nWill {favorite.title()} take the win?"
        elif session_type == "quali":
            body += f"\nCan {favorite.title()} grab pole?"
    return title, body


def run_sessions(ctx: TriggerContext, report: RunReport) -> None:
    parsed = ctx.feeds.sessions()
    report.add_malformed(parsed.malformed)
    due = [(s, w) for s in parsed.items for w in due_windows(ctx.now, s.start_time, SESSION_WINDOWS)]
    report.stats["due_reminders"] = len(due)
    if not due:
        logger.debug("No sessions inside a reminder window")
        return

    user_ids = ctx.recipients.recipient_ids()
    prefs = ctx.preferences.get_many(user_ids)
    for session, window in due:
        _, _, session_type = session_info(session.name)
        candidate = Candidate(MOTORSPORT, subtypes=session_subtypes(window.bucket, session_type))
        for user_id in user_ids:
            if stop_if_expired(ctx, report):
                return
            key = f"session:{session.id}:{window.bucket}"
            with report.attempt(key, user_id):
                if not allowed(prefs[user_id], candidate):
                    report.add(FILTERED, key, user_id=user_id)
                    continue
                if ctx.cursors.was_reminded(user_id, SESSION_REMINDER_DOMAIN, window.bucket, session.id):
                    report.add(SKIPPED, key, user_id=user_id, detail="already reminded")
                    continue
                title, body = session_message(
                    session, window.bucket, minutes_until(ctx.now, session.start_time), prefs[user_id].favorite_driver
                )
                deliver(
                    ctx,
                    user_id=user_id,
                    category=CATEGORY,
                    type=f"motorsport_session_{window.bucket}",
                    title=title,
                    body=body,
                    data={
                        "session_id": session.id,
                        "session_name": session.name,
                        "reminder": window.bucket,
                        "deep_link": "/motorsport?tab=schedule",
                    },
                )
                ctx.cursors.mark_reminded(user_id, SESSION_REMINDER_DOMAIN, window.bucket, session.id, at=ctx.now)
                report.add(SENT, key, user_id=user_id)
