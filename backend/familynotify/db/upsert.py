"""
Dialect-aware INSERT for upserts: PostgreSQL in production, SQLite in tests and local runs.
Both expose on_conflict_do_update / on_conflict_do_nothing with the same arguments.
"""
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session


def dialect_insert(db: Session):
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert
