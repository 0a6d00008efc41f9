from datetime import timedelta

from conftest import DummyFeeds, utc
from familynotify.services.feeds import CalendarEvent
from familynotify.services.triggers.base import FILTERED, RunReport, SENT, SKIPPED
from familynotify.services.triggers.calendar import (
    FieldChange,
    broadcast_calendar_change,
    event_emoji,
    event_revision,
    run_calendar_reminders,
)

START = utc(2026, 3, 14, 12, 0)  # 13:00 in Copenhagen


def event(**kw):
    values = {"id": "evt-1", "user_id": "alice", "title": "Emma's birthday", "start_time": START}
    values.update(kw)
    return CalendarEvent(**values)


def test_event_emoji_keywords():
    assert event_emoji("Emma's birthday", None) == "🎂"
    assert event_emoji("Tandlæge", "dentist check") == "🏥"
    assert event_emoji("Something", None) == "📌"


def test_owner_gets_reminder_once(run, dispatcher):
    feeds = DummyFeeds(calendar_events=[event(location="Home")])
    report = run(run_calendar_reminders, START - timedelta(hours=1), users=["alice", "bob"], feeds=feeds)
    assert report.sent == 1
    assert [s["user_id"] for s in dispatcher.sent] == ["alice"]
    assert dispatcher.sent[0]["title"] == "🎂 Emma's birthday in 1 hour"
    assert dispatcher.sent[0]["body"] == "🕐 13:00 at Home"

    report = run(run_calendar_reminders, START - timedelta(minutes=55), users=["alice", "bob"], feeds=feeds)
    assert report.count(SKIPPED) == 1
    assert len(dispatcher.sent) == 1


def test_all_day_events_get_no_timed_reminders(run, dispatcher):
    feeds = DummyFeeds(calendar_events=[event(all_day=True)])
    report = run(run_calendar_reminders, START - timedelta(minutes=15), users=["alice"], feeds=feeds)
    assert report.stats["due_reminders"] == 0
    assert dispatcher.sent == []


def test_reminder_bucket_switch_and_missing_channel(run, dispatcher):
    feeds = DummyFeeds(calendar_events=[event(), event(id="evt-2", user_id="dave")])
    prefs = {"alice": {"calendar_reminder_15m": False}}
    report = run(run_calendar_reminders, START - timedelta(minutes=15), users=["alice"], prefs=prefs, feeds=feeds)
    assert dispatcher.sent == []
    assert report.count(FILTERED) == 1
    assert [o.detail for o in report.outcomes if o.outcome == SKIPPED] == ["no delivery channel"]


def _broadcast(make_ctx, now, kind, evt, actor, changes=None, **kw):
    ctx = make_ctx(now, **kw)
    report = RunReport(trigger="calendar_broadcast")
    broadcast_calendar_change(ctx, report, kind=kind, event=evt, actor_id=actor, changes=changes)
    return report


def test_broadcast_skips_the_actor_by_default(make_ctx, dispatcher):
    now = START - timedelta(days=2)
    report = _broadcast(make_ctx, now, "created", event(), "alice", users=["alice", "bob", "carol"])
    assert sorted(s["user_id"] for s in dispatcher.sent) == ["bob", "carol"]
    assert [o.detail for o in report.outcomes if o.outcome == FILTERED] == ["own change"]
    assert dispatcher.sent[0]["title"] == "🎂 Emma's birthday"
    assert dispatcher.sent[0]["data"]["type"] == "event_created"


def test_broadcast_to_actor_when_opted_in(make_ctx, dispatcher):
    prefs = {"alice": {"calendar_notify_own_changes": True}, "bob": {"calendar_event_created": False}}
    _broadcast(make_ctx, START, "created", event(), "alice", users=["alice", "bob"], prefs=prefs)
    assert [s["user_id"] for s in dispatcher.sent] == ["alice"]


def test_broadcast_is_idempotent_per_revision(make_ctx, dispatcher):
    users = ["alice", "bob"]
    first = event(updated_at=START - timedelta(days=3))
    changes = [FieldChange(field="location", old_value=None, new_value="Legeland")]
    _broadcast(make_ctx, START, "changed", first, "alice", changes, users=users)
    report = _broadcast(make_ctx, START, "changed", first, "alice", changes, users=users)
    assert report.count(SKIPPED) == 1
    assert len(dispatcher.sent) == 1
    assert dispatcher.sent[0]["title"] == "✏️ Emma's birthday"
    assert dispatcher.sent[0]["body"].startswith("Location: Legeland")

    second = event(updated_at=START - timedelta(days=2))
    report = _broadcast(make_ctx, START, "changed", second, "alice", changes, users=users)
    assert report.count(SENT) == 1


def test_event_revision():
    assert event_revision("deleted", event(), []) == "deleted"
    changes = [FieldChange(field="title", new_value="Party")]
    assert event_revision("changed", event(), changes) == event_revision("changed", event(), list(changes))
    assert event_revision("changed", event(updated_at=START), []) == f"changed:{START.isoformat()}"
