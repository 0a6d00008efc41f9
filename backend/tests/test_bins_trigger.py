from datetime import date

from conftest import DummyFeeds, utc
from familynotify.core.errors import DataFetchError
from familynotify.services.feeds import BinCollection
from familynotify.services.triggers.base import FILTERED, SKIPPED
from familynotify.services.triggers.bins import bin_day_message, run_bins

# Saturday 14 March 2026, 19:00 in Copenhagen (UTC+1)
EVENING = utc(2026, 3, 14, 18, 0)


def collection(bin_type, name, day, emoji):
    return BinCollection(bin_type=bin_type, name=name, collection_date=day, emoji=emoji)


SCHEDULE = [
    collection("restaffald", "Restaffald", date(2026, 3, 15), "🗑️"),
    collection("madaffald", "Madaffald", date(2026, 3, 15), "🍎"),
    collection("papir_pap", "Papir & Pap", date(2026, 3, 17), "📦"),
]


def test_message_lists_every_bin():
    title, body = bin_day_message(SCHEDULE[:2])
    assert title == "🗑️ 🍎 Bin Day Tomorrow!"
    assert body == "Put out the Restaffald & Madaffald"


def test_nothing_before_the_evening_hour(run, dispatcher):
    # The feed is not even read before the reminder hour
    feeds = DummyFeeds(error=DataFetchError("bins feed down"))
    report = run(run_bins, utc(2026, 3, 14, 17, 59), users=["alice"], feeds=feeds)
    assert report.sent == 0
    assert dispatcher.sent == []


def test_broadcasts_tomorrows_bins_once_per_user(run, dispatcher):
    feeds = DummyFeeds(bins=SCHEDULE)
    report = run(run_bins, EVENING, users=["alice", "bob"], feeds=feeds)
    assert report.sent == 2
    assert report.stats["bins_tomorrow"] == 2
    sent = dispatcher.to("alice")[0]
    assert sent["title"] == "🍎 🗑️ Bin Day Tomorrow!"
    assert sent["body"] == "Put out the Madaffald & Restaffald"
    assert sent["data"]["bins"] == ["madaffald", "restaffald"]
    assert sent["data"]["collection_date"] == "2026-03-15"

    report = run(run_bins, utc(2026, 3, 14, 18, 15), users=["alice", "bob"], feeds=feeds)
    assert report.sent == 0
    assert report.count(SKIPPED) == 2
    assert len(dispatcher.sent) == 2


def test_respects_bin_switch(run, dispatcher):
    feeds = DummyFeeds(bins=SCHEDULE)
    report = run(run_bins, EVENING, users=["alice", "bob"], prefs={"bob": {"bin_day_reminder": False}}, feeds=feeds)
    assert report.count(FILTERED) == 1
    assert [s["user_id"] for s in dispatcher.sent] == ["alice"]


def test_no_bins_tomorrow_is_a_no_op(run, dispatcher):
    report = run(run_bins, utc(2026, 3, 15, 18, 0), users=["alice"], feeds=DummyFeeds(bins=SCHEDULE))
    assert report.stats["bins_tomorrow"] == 0
    assert dispatcher.sent == []
