import json
from datetime import date

import httpx
import pytest

from conftest import utc
from familynotify.config import settings
from familynotify.core.errors import ConfigurationError, DataFetchError
from familynotify.services.feeds import HttpFeeds, NewsItem, RankedEntity, Routine, parse_items


def _transport(status=200, payload=None, text=None):
    def handler(request):
        if text is not None:
            return httpx.Response(status, text=text)
        return httpx.Response(status, json=payload)

    return httpx.MockTransport(handler)


def test_news_feed_accepts_upstream_field_names(monkeypatch):
    monkeypatch.setattr(settings, "news_feed_url", "https://feeds.example/news")
    payload = {
        "items": [
            {
                "id": 1,
                "title": "Verstappen on pole",
                "description": "Qualifying report",
                "pubDate": "Sat, 14 Mar 2026 10:00:00 GMT",
                "isInteresting": True,
                "isSpoiler": True,
                "category": "race",
            },
            {"id": 2, "title": "No date"},
        ]
    }
    parsed = HttpFeeds(transport=_transport(payload=payload)).news()
    (item,) = parsed.items
    assert item.id == "1"
    assert item.published_at == utc(2026, 3, 14, 10, 0)
    assert item.interesting and item.spoiler
    assert item.body == "Qualifying report"
    assert [m.item_id for m in parsed.malformed] == ["2"]


def test_schedule_feed_flattens_meetings(monkeypatch):
    monkeypatch.setattr(settings, "schedule_feed_url", "https://feeds.example/schedule")
    payload = [
        {
            "meeting_name": "Miami Grand Prix",
            "country_name": "United States",
            "sessions": [
                {"session_key": 9157, "session_name": "Qualifying", "date_start": "2026-05-02T20:00:00+00:00"},
                {"session_key": 9158, "session_name": "Race", "date_start": "2026-05-03T20:00:00+00:00"},
            ],
        }
    ]
    parsed = HttpFeeds(transport=_transport(payload=payload)).sessions()
    assert [(s.id, s.parent, s.country) for s in parsed.items] == [
        ("9157", "Miami Grand Prix", "United States"),
        ("9158", "Miami Grand Prix", "United States"),
    ]


def test_bins_and_chores_feeds(monkeypatch):
    monkeypatch.setattr(settings, "bins_feed_url", "https://feeds.example/bins")
    monkeypatch.setattr(settings, "chores_feed_url", "https://feeds.example/chores")
    bins = {"collections": [{"id": "madaffald", "name": "Madaffald", "emoji": "🍎", "date": "2026-03-16"}, {"id": "papir_pap"}]}
    parsed = HttpFeeds(transport=_transport(payload=bins)).bin_collections()
    (pickup,) = parsed.items
    assert (pickup.bin_type, pickup.collection_date) == ("madaffald", date(2026, 3, 16))
    assert len(parsed.malformed) == 1

    chores = {"chores": [{"id": 7, "user_id": "alice", "title": "Vacuum", "due_date": None}]}
    (chore,) = HttpFeeds(transport=_transport(payload=chores)).chores().items
    assert chore.id == "7"
    assert chore.due_on(date(2026, 3, 14))


def test_unconfigured_feed(monkeypatch):
    monkeypatch.setattr(settings, "routines_feed_url", "")
    with pytest.raises(ConfigurationError):
        HttpFeeds().routines()


@pytest.mark.parametrize(
    "transport",
    [_transport(status=502, text="bad gateway"), _transport(text="<html>"), _transport(payload={"unexpected": 1})],
)
def test_unreadable_feed_is_a_fetch_error(monkeypatch, transport):
    monkeypatch.setattr(settings, "standings_feed_url", "https://feeds.example/standings")
    with pytest.raises(DataFetchError):
        HttpFeeds(transport=transport).standings()


def test_parse_items_standings_aliases():
    raw = {"drivers": [{"driverId": "norris", "familyName": "Norris", "givenName": "Lando", "points": "99"}]}
    (entity,) = parse_items(raw, RankedEntity, keys=("drivers",)).items
    assert entity.display_name == "Lando NORRIS"
    assert entity.score == 99


def test_routine_schedule_days():
    routine = Routine.model_validate(
        json.loads('{"id": "r1", "user_id": "u1", "title": "Bedtime", "scheduled_time": "19:30", "schedule_type": "weekdays"}')
    )
    assert routine.runs_on(1) and not routine.runs_on(0)


def test_news_item_mentions():
    item = NewsItem(id="n1", title="Norris signs", published_at=utc(2026, 3, 14))
    assert item.mentions("norris")
    assert not item.mentions(None)
