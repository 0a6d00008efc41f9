from conftest import DummyFeeds, utc
from familynotify.core.constants import FAVORITE_LEADER_FEED_KEY, LEADER_FEED_KEY
from familynotify.services.cursor_store import CursorStore
from familynotify.services.feeds import RankedEntity
from familynotify.services.triggers.base import FILTERED, INITIALIZED, SENT
from familynotify.services.triggers.standings import run_standings

NOW = utc(2026, 5, 4, 18, 0)


def standings(leader_id):
    rows = {
        "max_verstappen": RankedEntity(id="max_verstappen", name="Verstappen", given_name="Max", score=101),
        "norris": RankedEntity(id="norris", name="Norris", given_name="Lando", score=99, wins=3),
    }
    other = "norris" if leader_id == "max_verstappen" else "max_verstappen"
    rows[other] = rows[other].model_copy(update={"score": 90})
    return DummyFeeds(standings=list(rows.values()))


def test_first_observation_is_silent(db, run, dispatcher):
    report = run(run_standings, NOW, users=["alice"], feeds=standings("max_verstappen"))
    assert report.count(INITIALIZED) == 1
    assert dispatcher.sent == []
    assert CursorStore(db).get("alice", LEADER_FEED_KEY).value == "max_verstappen"


def test_leader_change_notifies_once(db, run, dispatcher):
    run(run_standings, NOW, users=["alice"], feeds=standings("max_verstappen"))
    report = run(run_standings, NOW, users=["alice"], feeds=standings("norris"))
    assert report.sent == 1
    assert dispatcher.sent[0]["title"] == "👑 NEW CHAMPIONSHIP LEADER"
    assert dispatcher.sent[0]["body"].startswith("Lando NORRIS takes the lead!")
    assert dispatcher.sent[0]["data"]["previous_leader"] == "max_verstappen"

    report = run(run_standings, NOW, users=["alice"], feeds=standings("norris"))
    assert report.sent == 0
    assert len(dispatcher.sent) == 1


def test_spoiler_free_user_is_vetoed_but_cursor_moves(db, run, dispatcher):
    prefs = {"alice": {"motorsport_spoiler_free": True}}
    run(run_standings, NOW, users=["alice"], prefs=prefs, feeds=standings("max_verstappen"))
    report = run(run_standings, NOW, users=["alice"], prefs=prefs, feeds=standings("norris"))
    assert report.count(FILTERED) == 1
    assert dispatcher.sent == []
    assert CursorStore(db).get("alice", LEADER_FEED_KEY).value == "norris"


def test_favorite_takes_the_lead(db, run, dispatcher):
    prefs = {"alice": {"motorsport_favorite_driver": "Norris"}, "bob": {"motorsport_favorite_driver": "Leclerc"}}
    users = ["alice", "bob"]
    run(run_standings, NOW, users=users, prefs=prefs, feeds=standings("max_verstappen"))
    assert CursorStore(db).get("alice", FAVORITE_LEADER_FEED_KEY).value == "max_verstappen"

    run(run_standings, NOW, users=users, prefs=prefs, feeds=standings("norris"))
    alice_titles = [s["title"] for s in dispatcher.to("alice")]
    assert "🏆 NORRIS LEADS THE CHAMPIONSHIP!" in alice_titles
    assert len(alice_titles) == 2
    assert [s["title"] for s in dispatcher.to("bob")] == ["👑 NEW CHAMPIONSHIP LEADER"]
    assert CursorStore(db).get("bob", FAVORITE_LEADER_FEED_KEY).value == "norris"


def test_report_counts(db, run):
    run(run_standings, NOW, users=["alice"], feeds=standings("max_verstappen"))
    report = run(run_standings, NOW, users=["alice"], feeds=standings("norris"))
    assert report.stats["ranked_entities"] == 2
    assert report.counts() == {SENT: 1}
