"""Append-only audit of attempted sends (and one cron_execution row per trigger run).

Not used for cross-run dedup; that is the cursor store's job.
"""
from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from familynotify.db.base import Base


class DeliveryLogEntry(Base):
    __tablename__ = "delivery_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=True, index=True)  # NULL for cron_execution rows
    category = Column(String(32), nullable=False, index=True)  # calendar | motorsport | shopping | ... | cron_execution
    type = Column(String(64), nullable=False)
    title = Column(String(256), nullable=False)
    body = Column(Text, nullable=True)
    payload = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
    outcome = Column(String(16), nullable=False)  # sent | failed | run
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
