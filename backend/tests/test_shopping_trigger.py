from datetime import timedelta

import pytest

from conftest import DummyDispatcher, utc
from familynotify.models.change_event import ChangeEvent
from familynotify.services.debounce import ChangeEventLog
from familynotify.services.triggers.base import FAILED, FILTERED, SKIPPED
from familynotify.services.triggers.shopping import run_shopping

T0 = utc(2026, 3, 14, 9, 0)
USERS = ["alice", "bob"]


def _at(minutes):
    return T0 + timedelta(minutes=minutes)


@pytest.fixture
def edits(db):
    log = ChangeEventLog(db)
    log.record("alice", "Milk", "added", _at(0))
    log.record("alice", "Eggs", "added", _at(2))
    log.record("alice", "Bread", "completed", _at(8))
    return log


def _remaining(db):
    return db.query(ChangeEvent).count()


def test_waits_while_author_is_editing(db, run, dispatcher, edits):
    report = run(run_shopping, _at(11), users=USERS)
    assert dispatcher.sent == []
    assert [o.detail for o in report.outcomes if o.outcome == SKIPPED] == ["still editing"]
    assert _remaining(db) == 3


def test_one_summary_per_recipient_after_quiet_period(db, run, dispatcher, edits):
    report = run(run_shopping, _at(18), users=USERS)
    assert report.sent == 2
    assert {s["user_id"] for s in dispatcher.sent} == {"alice", "bob"}
    assert dispatcher.sent[0]["title"] == "🛒 Shopping List Updated"
    assert dispatcher.sent[0]["body"] == "Added: Milk, Eggs\nCompleted: Bread"
    assert dispatcher.sent[0]["data"]["change_count"] == 3
    assert _remaining(db) == 0

    report = run(run_shopping, _at(19), users=USERS)
    assert report.sent == 0
    assert len(dispatcher.sent) == 2


def test_author_can_opt_out_of_own_changes(run, dispatcher, edits):
    run(run_shopping, _at(18), users=USERS, prefs={"alice": {"shopping_notify_own_changes": False}})
    assert [s["user_id"] for s in dispatcher.sent] == ["bob"]


def test_batch_nobody_wants_is_consumed(db, run, dispatcher, edits):
    prefs = {"alice": {"shopping_notify_own_changes": False}, "bob": {"shopping_list_changes": False}}
    report = run(run_shopping, _at(18), users=USERS, prefs=prefs)
    assert report.count(FILTERED) == 1
    assert dispatcher.sent == []
    assert _remaining(db) == 0


def test_batch_kept_when_every_send_fails(db, run, edits):
    failing = DummyDispatcher(fail_for=set(USERS))
    report = run(run_shopping, _at(18), users=USERS, dispatch=failing)
    assert report.count(FAILED) == 2
    assert _remaining(db) == 3


def test_events_older_than_twice_quiet_period_expire(db, run, edits):
    ChangeEventLog(db).record("carol", "Soap", "added", _at(-40))
    report = run(run_shopping, _at(11), users=USERS)
    assert report.stats["expired_events"] == 1
    assert _remaining(db) == 3
