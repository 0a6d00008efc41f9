import pytest

from familynotify.models.notification_preference import NotificationPreference
from familynotify.services.preferences import (
    CALENDAR,
    MOTORSPORT,
    Candidate,
    PreferenceSet,
    SqlPreferenceSource,
    allowed,
    notify_self,
    wants_news_category,
)

NEWS = Candidate(MOTORSPORT, subtypes=("motorsport_news_enabled",), category="race")


def test_missing_preferences_allow_everything():
    assert allowed(None, NEWS)
    assert allowed(PreferenceSet(user_id="alice"), NEWS)


@pytest.mark.parametrize(
    "switches",
    [
        {"enabled": False},
        {"motorsport_enabled": False},
        {"motorsport_news_enabled": False},
        {"motorsport_news_race_category": False},
    ],
)
def test_explicit_false_anywhere_in_chain_vetoes(switches):
    assert not allowed(PreferenceSet(**switches), NEWS)


def test_master_switch_wins_over_lower_levels():
    prefs = PreferenceSet(enabled=False, motorsport_enabled=True, motorsport_news_enabled=True)
    assert not allowed(prefs, NEWS)


def test_other_domain_switch_does_not_matter():
    assert allowed(PreferenceSet(calendar_enabled=False), NEWS)
    assert not allowed(PreferenceSet(calendar_enabled=False), Candidate(CALENDAR))


def test_unknown_subtype_is_a_programming_error():
    with pytest.raises(KeyError):
        allowed(PreferenceSet(), Candidate(MOTORSPORT, subtypes=("motorsport_nonsense",)))


def test_spoiler_free_vetoes_spoilers_only():
    prefs = PreferenceSet(motorsport_spoiler_free=True)
    assert not allowed(prefs, Candidate(MOTORSPORT, spoiler=True))
    assert allowed(prefs, Candidate(MOTORSPORT, spoiler=False))


def test_category_filter_bypassed_in_ai_curated_mode():
    prefs = PreferenceSet(motorsport_news_technical_category=False)
    assert not wants_news_category(prefs, "technical")
    assert wants_news_category(prefs, "other")
    prefs = PreferenceSet(motorsport_news_technical_category=False, motorsport_news_ai_curated=True)
    assert wants_news_category(prefs, "technical")


def test_favorite_entity_requires_matching_favorite():
    candidate = Candidate(MOTORSPORT, favorite_entity=("max_verstappen", "Verstappen"))
    assert not allowed(PreferenceSet(), candidate)
    assert not allowed(PreferenceSet(motorsport_favorite_driver="Norris"), candidate)
    assert allowed(PreferenceSet(motorsport_favorite_driver=" verstappen "), candidate)


def test_notify_self_defaults():
    assert notify_self(PreferenceSet(), "calendar_notify_own_changes", default=False) is False
    assert notify_self(PreferenceSet(), "shopping_notify_own_changes", default=True) is True
    assert notify_self(PreferenceSet(shopping_notify_own_changes=False), "shopping_notify_own_changes", default=True) is False


def test_sql_source_reads_rows_and_defaults_missing_users(db):
    db.add(NotificationPreference(user_id="alice", motorsport_enabled=False, motorsport_favorite_driver="Leclerc"))
    db.commit()
    prefs = SqlPreferenceSource(db).get_many(["alice", "bob"])
    assert prefs["alice"].motorsport_enabled is False
    assert prefs["alice"].favorite_driver == "Leclerc"
    assert prefs["bob"] == PreferenceSet(user_id="bob")
    assert not allowed(prefs["alice"], NEWS)
    assert allowed(prefs["bob"], NEWS)
