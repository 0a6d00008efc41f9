"""
Single source of truth for database tables that exist after migrations.

Use these names when writing raw SQL (e.g. TRUNCATE). notification_preferences is owned by the
settings UI; this service only reads it.
"""
# All tables that exist in the DB. Must match models and migrations.
ALL_TABLE_NAMES = (
    "notification_cursors",
    "change_events",
    "notification_preferences",
    "push_tokens",
    "delivery_log",
    "task_reminders",
)

# Engine state cleared by a full admin reset. Preferences and push tokens are kept.
ENGINE_STATE_TABLE_NAMES = (
    "notification_cursors",
    "change_events",
    "delivery_log",
)
