"""
Centralized constants for the scheduler and trigger drivers (Encapsulate What Changes).

Change job IDs, cadences, cursor keys or reminder windows here instead of scattering literals
across drivers, main and routes. Tunables that differ per deployment live in config.Settings.
"""
from datetime import timedelta

from familynotify.services.window_matcher import ReminderWindow

# Trigger names (URL segment for POST /triggers/{name}, scheduler job id suffix)
NEWS_TRIGGER = "news"
STANDINGS_TRIGGER = "standings"
SESSIONS_TRIGGER = "sessions"
CALENDAR_REMINDERS_TRIGGER = "calendar_reminders"
ROUTINES_TRIGGER = "routines"
TASKS_TRIGGER = "tasks"
SHOPPING_TRIGGER = "shopping"
BINS_TRIGGER = "bins"
CHORES_TRIGGER = "chores"
MAINTENANCE_TRIGGER = "maintenance"

# Scheduler cadences (seconds). Windowed drivers must poll at <= 2x their narrowest tolerance.
TRIGGER_INTERVAL_SECONDS = {
    NEWS_TRIGGER: 30 * 60,
    STANDINGS_TRIGGER: 60 * 60,
    SESSIONS_TRIGGER: 10 * 60,
    CALENDAR_REMINDERS_TRIGGER: 10 * 60,
    ROUTINES_TRIGGER: 5 * 60,
    TASKS_TRIGGER: 5 * 60,
    SHOPPING_TRIGGER: 10 * 60,
    BINS_TRIGGER: 15 * 60,
    CHORES_TRIGGER: 15 * 60,
    MAINTENANCE_TRIGGER: 24 * 60 * 60,
}


def job_id(trigger: str) -> str:
    """Scheduler job id (ids registered by scheduler.notify_jobs.register_jobs)."""
    return f"notify_{trigger}"


# Cursor feed keys (one row per user per key)
NEWS_FEED_KEY = "motorsport:news"
LEADER_FEED_KEY = "motorsport:leader"
FAVORITE_LEADER_FEED_KEY = "motorsport:favorite_leader"

# Reminder mark domains (feed_key = reminder:{domain}:{bucket}:{item_id})
SESSION_REMINDER_DOMAIN = "session"
CALENDAR_REMINDER_DOMAIN = "calendar"
ROUTINE_REMINDER_DOMAIN = "routine"
BROADCAST_DOMAIN = "broadcast"
BIN_REMINDER_DOMAIN = "bins"
CHORE_DIGEST_DOMAIN = "chores"

# Reminder window specs per domain: (bucket, offset before target, tolerance)
SESSION_WINDOWS = (
    ReminderWindow("15m", timedelta(minutes=15), timedelta(minutes=5)),
    ReminderWindow("1h", timedelta(hours=1), timedelta(minutes=5)),
    ReminderWindow("1d", timedelta(days=1), timedelta(hours=1)),
)
CALENDAR_WINDOWS = (
    ReminderWindow("15m", timedelta(minutes=15), timedelta(minutes=5)),
    ReminderWindow("30m", timedelta(minutes=30), timedelta(minutes=5)),
    ReminderWindow("1h", timedelta(hours=1), timedelta(minutes=10)),
    ReminderWindow("1d", timedelta(days=1), timedelta(hours=1)),
)
# Fires from the scheduled time until ten minutes after it
ROUTINE_WINDOWS = (ReminderWindow("start", timedelta(minutes=-5), timedelta(minutes=5)),)

# Batch caps: keep one run's burst bounded
TASK_REMINDERS_PER_RUN = 100
SHOPPING_NAMES_LISTED = 3
ROUTINE_STEPS_PREVIEWED = 3
CHORE_TITLES_LISTED = 3
