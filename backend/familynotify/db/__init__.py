from familynotify.db.base import Base
from familynotify.db.session import get_db, engine, SessionLocal
from familynotify.db.tables import ALL_TABLE_NAMES, ENGINE_STATE_TABLE_NAMES

__all__ = ["get_db", "engine", "SessionLocal", "Base", "ALL_TABLE_NAMES", "ENGINE_STATE_TABLE_NAMES"]
