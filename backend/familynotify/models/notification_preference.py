"""User notification settings (owned by the settings UI; read-only here).

Every switch is nullable: NULL means "never set" and is treated as enabled (opt-out model).
Modifiers (spoiler_free, news_ai_curated) treat NULL as off.
"""
from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.sql import func

from familynotify.db.base import Base


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    user_id = Column(String(64), primary_key=True)
    enabled = Column(Boolean, nullable=True)

    calendar_enabled = Column(Boolean, nullable=True)
    calendar_reminder_15m = Column(Boolean, nullable=True)
    calendar_reminder_30m = Column(Boolean, nullable=True)
    calendar_reminder_1h = Column(Boolean, nullable=True)
    calendar_reminder_1d = Column(Boolean, nullable=True)
    calendar_event_created = Column(Boolean, nullable=True)
    calendar_event_changed = Column(Boolean, nullable=True)
    calendar_event_deleted = Column(Boolean, nullable=True)
    calendar_notify_own_changes = Column(Boolean, nullable=True)

    motorsport_enabled = Column(Boolean, nullable=True)
    motorsport_news_enabled = Column(Boolean, nullable=True)
    motorsport_news_ai_curated = Column(Boolean, nullable=True)
    motorsport_spoiler_free = Column(Boolean, nullable=True)
    motorsport_news_race_category = Column(Boolean, nullable=True)
    motorsport_news_driver_category = Column(Boolean, nullable=True)
    motorsport_news_technical_category = Column(Boolean, nullable=True)
    motorsport_news_calendar_category = Column(Boolean, nullable=True)
    motorsport_race_reminder_15m = Column(Boolean, nullable=True)
    motorsport_race_reminder_1h = Column(Boolean, nullable=True)
    motorsport_race_reminder_1d = Column(Boolean, nullable=True)
    motorsport_quali_reminder = Column(Boolean, nullable=True)
    motorsport_sprint_reminder = Column(Boolean, nullable=True)
    motorsport_practice_reminder = Column(Boolean, nullable=True)
    motorsport_championship_updates = Column(Boolean, nullable=True)
    motorsport_favorite_win = Column(Boolean, nullable=True)
    motorsport_favorite_driver = Column(String(64), nullable=True)

    shopping_enabled = Column(Boolean, nullable=True)
    shopping_list_changes = Column(Boolean, nullable=True)
    shopping_notify_own_changes = Column(Boolean, nullable=True)

    routines_enabled = Column(Boolean, nullable=True)
    routine_start_reminder = Column(Boolean, nullable=True)

    tasks_enabled = Column(Boolean, nullable=True)
    task_reminders = Column(Boolean, nullable=True)

    bins_enabled = Column(Boolean, nullable=True)
    bin_day_reminder = Column(Boolean, nullable=True)

    chores_enabled = Column(Boolean, nullable=True)
    chore_daily_digest = Column(Boolean, nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
