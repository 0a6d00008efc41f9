"""
Pytest configuration for the notification engine tests.

- backend/ on sys.path so `import familynotify.*` works without installing.
- Safe settings before anything imports familynotify.config: in-memory SQLite, dry-run dispatch,
  no cron secret, scheduler off.
- One fresh in-memory database per test, plus small Dummy stand-ins for the dispatcher, feeds,
  recipient directory and preference source.
"""
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

# backend/tests/ -> backend/
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DISPATCH_MODE"] = "log"
os.environ["CRON_SECRET"] = ""
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["LOCAL_TIMEZONE"] = "Europe/Copenhagen"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import familynotify.models  # noqa: F401
from familynotify.db.base import Base
from familynotify.services.dispatch import DispatchResult
from familynotify.services.feeds import ParsedFeed
from familynotify.services.preferences import PreferenceSet
from familynotify.services.triggers.base import RunReport, TriggerContext


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


class DummyDispatcher:
    """Records every send; users in fail_for get a failed result (nothing delivered)."""

    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def send(self, user_id, title, body, data=None):
        if user_id in self.fail_for:
            return DispatchResult(sent=0, error="device unreachable")
        self.sent.append({"user_id": user_id, "title": title, "body": body, "data": data or {}})
        return DispatchResult(sent=1)

    def to(self, user_id):
        return [s for s in self.sent if s["user_id"] == user_id]


class DummyFeeds:
    """Feeds backed by in-memory lists; set `error` to make every read raise it."""

    def __init__(
        self, news=(), standings=(), sessions=(), calendar_events=(), routines=(), bins=(), chores=(), error=None
    ):
        self._items = {
            "news": list(news),
            "standings": list(standings),
            "sessions": list(sessions),
            "calendar_events": list(calendar_events),
            "routines": list(routines),
            "bins": list(bins),
            "chores": list(chores),
        }
        self.error = error

    def _read(self, name):
        if self.error is not None:
            raise self.error
        return ParsedFeed(items=list(self._items[name]))

    def news(self):
        return self._read("news")

    def standings(self):
        return self._read("standings")

    def sessions(self):
        return self._read("sessions")

    def calendar_events(self):
        return self._read("calendar_events")

    def routines(self):
        return self._read("routines")

    def bin_collections(self):
        return self._read("bins")

    def chores(self):
        return self._read("chores")


class DummyRecipients:
    def __init__(self, user_ids=()):
        self.user_ids = list(user_ids)

    def recipient_ids(self):
        return list(self.user_ids)


class DummyPreferences:
    """user_id -> dict of switches; unknown users get an empty (all-allowed) PreferenceSet."""

    def __init__(self, prefs=None):
        self.prefs = prefs or {}

    def get(self, user_id):
        return PreferenceSet(user_id=user_id, **self.prefs.get(user_id, {}))

    def get_many(self, user_ids):
        return {uid: self.get(uid) for uid in user_ids}


@pytest.fixture
def dispatcher():
    return DummyDispatcher()


@pytest.fixture
def make_ctx(db, dispatcher):
    """Factory: make_ctx(now, users=[...], prefs={...}, feeds=DummyFeeds(...)) -> TriggerContext."""

    def _make(now, *, users=(), prefs=None, feeds=None, dispatch=None, deadline=None):
        return TriggerContext(
            db,
            now=now,
            preferences=DummyPreferences(prefs),
            recipients=DummyRecipients(users),
            feeds=feeds or DummyFeeds(),
            dispatcher=dispatch or dispatcher,
            deadline=deadline,
        )

    return _make


@pytest.fixture
def run(make_ctx):
    """run(driver, now, **ctx_kwargs) -> RunReport, with a fresh context per call."""

    def _run(driver, now, **kwargs):
        ctx = make_ctx(now, **kwargs)
        report = RunReport(trigger=driver.__name__, started_at=ctx.now)
        driver(ctx, report)
        report.finish()
        return report

    return _run
