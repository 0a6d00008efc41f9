"""Per-(user, feed) watermark: the single source of truth for "already notified".

last_watermark: intrinsic timestamp of the newest item actually dispatched (never wall-clock now).
last_item_id: opaque dedup token of that item. last_value: tracked value for state-diff feeds
(e.g. current championship leader). Reminder marks reuse the table with feed_key
'reminder:{domain}:{bucket}:{item_id}' (row existence = already reminded).
"""
from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from familynotify.db.base import Base


class NotificationCursor(Base):
    __tablename__ = "notification_cursors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    feed_key = Column(String(255), nullable=False)
    last_watermark = Column(DateTime(timezone=True), nullable=True)
    last_item_id = Column(String(255), nullable=True)
    last_value = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "feed_key", name="uq_notification_cursors_user_feed"),)
