from datetime import date

from conftest import DummyFeeds, utc
from familynotify.services.feeds import Chore
from familynotify.services.triggers.base import FILTERED, SKIPPED
from familynotify.services.triggers.chores import chore_digest_message, run_chores

# Saturday 14 March 2026, 09:00 in Copenhagen (UTC+1)
MORNING = utc(2026, 3, 14, 8, 0)
TODAY = date(2026, 3, 14)


def chore(n, user="alice", **kw):
    return Chore(id=f"c{n}", user_id=user, title=kw.pop("title", f"Chore {n}"), **kw)


def test_digest_lists_three_titles_then_counts():
    chores = [chore(n) for n in range(1, 6)]
    assert chore_digest_message(chores) == ("5 chores for today", "Chore 1, Chore 2, Chore 3 +2 more")
    assert chore_digest_message(chores[:1]) == ("1 chore for today", "Chore 1")


def test_due_on_today_or_undated_and_pending():
    assert chore(1, due_date=TODAY).due_on(TODAY)
    assert chore(2).due_on(TODAY)
    assert not chore(3, due_date=date(2026, 3, 15)).due_on(TODAY)
    assert not chore(4, status="completed").due_on(TODAY)


def test_one_digest_per_owner_per_day(run, dispatcher):
    feeds = DummyFeeds(
        chores=[
            chore(1, title="Vacuum", due_date=TODAY),
            chore(2, title="Water plants"),
            chore(3, due_date=date(2026, 3, 16)),
            chore(4, user="bob", title="Walk dog"),
            chore(5, user="bob", status="completed"),
        ]
    )
    report = run(run_chores, MORNING, users=["alice", "bob"], feeds=feeds)
    assert report.sent == 2
    assert report.stats["chores_due"] == 3
    alice = dispatcher.to("alice")[0]
    assert alice["title"] == "2 chores for today"
    assert alice["body"] == "Vacuum, Water plants"
    assert alice["data"]["chore_ids"] == ["c1", "c2"]
    assert dispatcher.to("bob")[0]["body"] == "Walk dog"

    report = run(run_chores, utc(2026, 3, 14, 10, 0), users=["alice", "bob"], feeds=feeds)
    assert report.count(SKIPPED) == 2
    assert len(dispatcher.sent) == 2


def test_nothing_before_the_digest_hour(run, dispatcher):
    report = run(run_chores, utc(2026, 3, 14, 7, 59), users=["alice"], feeds=DummyFeeds(chores=[chore(1)]))
    assert report.sent == 0
    assert dispatcher.sent == []


def test_owner_without_channel_or_opted_out_is_skipped(run, dispatcher):
    feeds = DummyFeeds(chores=[chore(1), chore(2, user="bob"), chore(3, user="carol")])
    report = run(run_chores, MORNING, users=["alice", "bob"], prefs={"bob": {"chores_enabled": False}}, feeds=feeds)
    assert report.count(FILTERED) == 1
    assert report.count(SKIPPED) == 1
    assert [s["user_id"] for s in dispatcher.sent] == ["alice"]
