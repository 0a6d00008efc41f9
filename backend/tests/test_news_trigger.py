from datetime import timedelta

from conftest import DummyDispatcher, DummyFeeds, utc
from familynotify.core.constants import NEWS_FEED_KEY
from familynotify.services.cursor_store import CursorStore
from familynotify.services.feeds import NewsItem
from familynotify.services.triggers.base import FAILED, FILTERED, INITIALIZED, SENT
from familynotify.services.triggers.news import build_news_message, run_news
from familynotify.services.preferences import PreferenceSet

T0 = utc(2026, 3, 14, 10, 0)


def item(n, minutes, **kw):
    return NewsItem(
        id=f"n{n}",
        title=kw.pop("title", f"Story {n}"),
        published_at=T0 + timedelta(minutes=minutes),
        interesting=kw.pop("interesting", True),
        **kw,
    )


def watermark(db, user="alice"):
    return CursorStore(db).get(user, NEWS_FEED_KEY).watermark


def test_first_run_initializes_without_sending(db, run, dispatcher):
    feeds = DummyFeeds(news=[item(1, 0), item(2, 60), item(3, 30, interesting=False)])
    report = run(run_news, T0 + timedelta(hours=2), users=["alice"], feeds=feeds)
    assert report.count(INITIALIZED) == 1
    assert dispatcher.sent == []
    assert watermark(db) == T0 + timedelta(minutes=60)


def test_sends_new_items_once(db, run, dispatcher):
    CursorStore(db).initialize("alice", NEWS_FEED_KEY, watermark=T0)
    feeds = DummyFeeds(news=[item(1, 0), item(2, 60)])

    report = run(run_news, T0 + timedelta(hours=2), users=["alice"], feeds=feeds)
    assert report.sent == 1
    assert dispatcher.sent[0]["body"].startswith("Story 2")
    assert dispatcher.sent[0]["data"]["type"] == "motorsport_news"

    report = run(run_news, T0 + timedelta(hours=3), users=["alice"], feeds=feeds)
    assert report.sent == 0
    assert len(dispatcher.sent) == 1


def test_watermark_is_item_time_not_run_time(db, run, dispatcher):
    """An item published between the last sent item and the run time must still go out next run."""
    CursorStore(db).initialize("alice", NEWS_FEED_KEY, watermark=T0)
    run(run_news, T0 + timedelta(hours=3), users=["alice"], feeds=DummyFeeds(news=[item(1, 60)]))
    assert watermark(db) == T0 + timedelta(minutes=60)

    late = DummyFeeds(news=[item(1, 60), item(2, 90)])
    report = run(run_news, T0 + timedelta(hours=4), users=["alice"], feeds=late)
    assert report.sent == 1
    assert dispatcher.sent[-1]["data"]["article_id"] == "n2"


def test_batch_cap_sends_oldest_first_as_one_summary(db, run, dispatcher):
    CursorStore(db).initialize("alice", NEWS_FEED_KEY, watermark=T0)
    feeds = DummyFeeds(news=[item(n, n * 10) for n in range(1, 6)])

    run(run_news, T0 + timedelta(hours=2), users=["alice"], feeds=feeds)
    first = dispatcher.sent[0]
    assert first["title"] == "📰 3 New Motorsport Stories"
    assert first["data"]["article_ids"] == ["n1", "n2", "n3"]
    assert watermark(db) == T0 + timedelta(minutes=30)

    run(run_news, T0 + timedelta(hours=2, minutes=30), users=["alice"], feeds=feeds)
    assert dispatcher.sent[1]["data"]["article_ids"] == ["n4", "n5"]
    assert watermark(db) == T0 + timedelta(minutes=50)


def test_batch_cap_inside_one_timestamp_resumes_at_next_item(db, run, dispatcher):
    CursorStore(db).initialize("alice", NEWS_FEED_KEY, watermark=T0)
    feeds = DummyFeeds(news=[item(n, 5) for n in range(1, 5)])

    run(run_news, T0 + timedelta(hours=1), users=["alice"], feeds=feeds)
    run(run_news, T0 + timedelta(hours=2), users=["alice"], feeds=feeds)
    run(run_news, T0 + timedelta(hours=3), users=["alice"], feeds=feeds)

    assert dispatcher.sent[0]["data"]["article_ids"] == ["n1", "n2", "n3"]
    assert dispatcher.sent[1]["data"]["article_id"] == "n4"
    assert len(dispatcher.sent) == 2
    assert CursorStore(db).get("alice", NEWS_FEED_KEY).item_id == "n4"


def test_spoiler_free_user_does_not_get_spoilers(db, run, dispatcher):
    for user in ("alice", "bob"):
        CursorStore(db).initialize(user, NEWS_FEED_KEY, watermark=T0)
    feeds = DummyFeeds(news=[item(1, 10, spoiler=True)])
    prefs = {"bob": {"motorsport_spoiler_free": True}}
    report = run(run_news, T0 + timedelta(hours=1), users=["alice", "bob"], prefs=prefs, feeds=feeds)
    assert [s["user_id"] for s in dispatcher.sent] == ["alice"]
    assert report.count(FILTERED) == 0
    assert watermark(db, "bob") == T0


def test_failed_send_keeps_cursor_for_retry(db, run):
    CursorStore(db).initialize("alice", NEWS_FEED_KEY, watermark=T0)
    feeds = DummyFeeds(news=[item(1, 10)])
    report = run(run_news, T0 + timedelta(hours=1), users=["alice"], feeds=feeds, dispatch=DummyDispatcher(fail_for={"alice"}))
    assert report.count(FAILED) == 1
    assert watermark(db) == T0

    retry = DummyDispatcher()
    report = run(run_news, T0 + timedelta(hours=2), users=["alice"], feeds=feeds, dispatch=retry)
    assert report.count(SENT) == 1
    assert len(retry.sent) == 1


def test_favorite_driver_headline():
    prefs = PreferenceSet(motorsport_favorite_driver="Norris")
    title, body, data = build_news_message([item(1, 0, title="Norris extends contract", category="driver")], prefs)
    assert title == "👤 NORRIS NEWS"
    assert data["category"] == "driver"
