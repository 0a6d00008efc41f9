"""Notification engine tables.

- notification_cursors: per (user, feed_key) watermark / state-diff value; reminder marks reuse it.
- change_events: raw shopping list mutations waiting for their quiet period.
- notification_preferences: owned by the settings UI, read-only for the engine.
- push_tokens: delivery channels per user.
- delivery_log: append-only audit of sends plus one row per trigger run.
- task_reminders: pre-scheduled task reminders with their own status.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PREFERENCE_SWITCHES = (
    "enabled",
    "calendar_enabled",
    "calendar_reminder_15m",
    "calendar_reminder_30m",
    "calendar_reminder_1h",
    "calendar_reminder_1d",
    "calendar_event_created",
    "calendar_event_changed",
    "calendar_event_deleted",
    "calendar_notify_own_changes",
    "motorsport_enabled",
    "motorsport_news_enabled",
    "motorsport_news_ai_curated",
    "motorsport_spoiler_free",
    "motorsport_news_race_category",
    "motorsport_news_driver_category",
    "motorsport_news_technical_category",
    "motorsport_news_calendar_category",
    "motorsport_race_reminder_15m",
    "motorsport_race_reminder_1h",
    "motorsport_race_reminder_1d",
    "motorsport_quali_reminder",
    "motorsport_sprint_reminder",
    "motorsport_practice_reminder",
    "motorsport_championship_updates",
    "motorsport_favorite_win",
    "shopping_enabled",
    "shopping_list_changes",
    "shopping_notify_own_changes",
    "routines_enabled",
    "routine_start_reminder",
    "tasks_enabled",
    "task_reminders",
)


def upgrade() -> None:
    op.create_table(
        "notification_cursors",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("feed_key", sa.String(255), nullable=False),
        sa.Column("last_watermark", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_item_id", sa.String(255), nullable=True),
        sa.Column("last_value", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "feed_key", name="uq_notification_cursors_user_feed"),
    )
    op.create_index("ix_notification_cursors_user_id", "notification_cursors", ["user_id"], unique=False)

    op.create_table(
        "change_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("entity_name", sa.String(256), nullable=False),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_change_events_user_id", "change_events", ["user_id"], unique=False)
    op.create_index("ix_change_events_occurred_at", "change_events", ["occurred_at"], unique=False)

    op.create_table(
        "notification_preferences",
        sa.Column("user_id", sa.String(64), nullable=False),
        *[sa.Column(name, sa.Boolean(), nullable=True) for name in PREFERENCE_SWITCHES],
        sa.Column("motorsport_favorite_driver", sa.String(64), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "push_tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("device_token", sa.String(256), nullable=False),
        sa.Column("platform", sa.String(16), nullable=False, server_default="ios"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_push_tokens_user_id", "push_tokens", ["user_id"], unique=False)
    op.create_index("ix_push_tokens_device_token", "push_tokens", ["device_token"], unique=True)

    op.create_table(
        "delivery_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("payload", JSONB, nullable=False, server_default="{}"),
        sa.Column("outcome", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_delivery_log_user_id", "delivery_log", ["user_id"], unique=False)
    op.create_index("ix_delivery_log_category", "delivery_log", ["category"], unique=False)
    op.create_index("ix_delivery_log_created_at", "delivery_log", ["created_at"], unique=False)

    op.create_table(
        "task_reminders",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("task_id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("context_reason", sa.String(128), nullable=True),
        sa.Column("attempt_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("task_title", sa.String(256), nullable=False),
        sa.Column("task_urgency", sa.String(16), nullable=True),
        sa.Column("assignee_name", sa.String(128), nullable=True),
        sa.Column("category_emoji", sa.String(16), nullable=True),
        sa.Column("dispatch_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_task_reminders_task_id", "task_reminders", ["task_id"], unique=False)
    op.create_index("ix_task_reminders_user_id", "task_reminders", ["user_id"], unique=False)
    op.create_index("ix_task_reminders_scheduled_for", "task_reminders", ["scheduled_for"], unique=False)
    op.create_index("ix_task_reminders_status", "task_reminders", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_task_reminders_status", table_name="task_reminders")
    op.drop_index("ix_task_reminders_scheduled_for", table_name="task_reminders")
    op.drop_index("ix_task_reminders_user_id", table_name="task_reminders")
    op.drop_index("ix_task_reminders_task_id", table_name="task_reminders")
    op.drop_table("task_reminders")
    op.drop_index("ix_delivery_log_created_at", table_name="delivery_log")
    op.drop_index("ix_delivery_log_category", table_name="delivery_log")
    op.drop_index("ix_delivery_log_user_id", table_name="delivery_log")
    op.drop_table("delivery_log")
    op.drop_index("ix_push_tokens_device_token", table_name="push_tokens")
    op.drop_index("ix_push_tokens_user_id", table_name="push_tokens")
    op.drop_table("push_tokens")
    op.drop_table("notification_preferences")
    op.drop_index("ix_change_events_occurred_at", table_name="change_events")
    op.drop_index("ix_change_events_user_id", table_name="change_events")
    op.drop_table("change_events")
    op.drop_index("ix_notification_cursors_user_id", table_name="notification_cursors")
    op.drop_table("notification_cursors")
