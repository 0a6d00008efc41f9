"""Append-only raw mutations (shopping list edits) feeding the debounce aggregator.

Written by the mutating operation, read by the shopping trigger, deleted on commit. Never updated.
"""
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from familynotify.db.base import Base

CHANGE_ACTIONS = ("added", "removed", "completed")


class ChangeEvent(Base):
    __tablename__ = "change_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    entity_name = Column(String(256), nullable=False)
    action = Column(String(16), nullable=False)  # added | removed | completed
    occurred_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
