"""Pre-scheduled task reminders, each with its own lifecycle.

status: pending -> sent | failed | skipped | acknowledged. Only pending rows whose scheduled_for
has passed are dispatched. Task fields are snapshotted at scheduling time so the dispatch pass
does not need the task store; status changes on the task reach us through on_task_status_changed.
"""
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from familynotify.db.base import Base


class TaskReminder(Base):
    __tablename__ = "task_reminders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(String(64), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    scheduled_for = Column(DateTime(timezone=True), nullable=False, index=True)
    context_reason = Column(String(128), nullable=True)
    attempt_number = Column(Integer, nullable=False, default=1)
    status = Column(String(16), nullable=False, default="pending", index=True)

    task_title = Column(String(256), nullable=False)
    task_urgency = Column(String(16), nullable=True)  # low | normal | high | urgent
    assignee_name = Column(String(128), nullable=True)
    category_emoji = Column(String(16), nullable=True)

    dispatch_attempts = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
