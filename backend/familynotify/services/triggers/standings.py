"""
Championship standings (state-diff, hourly).

Not time-based: a notification fires when the tracked value (current leader id) differs from
the value stored on the user's cursor. Two independent sub-triggers, each with its own cursor:
the leader change itself, and "your favorite takes the lead". The first observation stores the
value silently. Results are spoilers, so spoiler-free users are vetoed (their cursor still moves).
"""
import logging

from familynotify.core.constants import FAVORITE_LEADER_FEED_KEY, LEADER_FEED_KEY
from familynotify.services.preferences import MOTORSPORT, Candidate, PreferenceSet, allowed
from familynotify.services.triggers.base import (
    FILTERED,
    INITIALIZED,
    SENT,
    RunReport,
    TriggerContext,
    deliver,
    stop_if_expired,
)

logger = logging.getLogger(__name__)

CATEGORY = "motorsport"
DEEP_LINK = "/motorsport?tab=drivers"


def _points(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def _gap(leader, runner_up) -> str:
    if runner_up is None:
        return ""
    return _points(leader.score - runner_up.score)


def leader_change_message(leader, runner_up) -> tuple[str, str]:
    title = "👑 NEW CHAMPIONSHIP LEADER"
    body = f"{leader.display_name} takes the lead!\n📊 {_points(leader.score)} pts"
    if runner_up is not None:
        body += f" (+{_gap(leader, runner_up)} over {runner_up.name})"
    return title, body


def favorite_leads_message(leader, runner_up) -> tuple[str, str]:
    title = f"🏆 {leader.name.upper()} LEADS THE CHAMPIONSHIP!"
    body = f"{leader.display_name}\n📊 {_points(leader.score)} points"
    if runner_up is not None:
        body += f" (+{_gap(leader, runner_up)} gap)"
    if leader.wins is not None:
        body += f"\n🏆 {leader.wins} wins this season"
    return title, body


def _leader_change(ctx: TriggerContext, report: RunReport, user_id: str, prefs: PreferenceSet, leader, runner_up) -> None:
    key = f"leader:{leader.id}"
    cursor = ctx.cursors.get(user_id, LEADER_FEED_KEY)
    if cursor.value is None:
        ctx.cursors.compare_and_set_value(user_id, LEADER_FEED_KEY, None, leader.id)
        report.add(INITIALIZED, key, user_id=user_id)
        return
    if cursor.value == leader.id:
        return
    candidate = Candidate(MOTORSPORT, subtypes=("motorsport_championship_updates",), spoiler=True)
    if not allowed(prefs, candidate):
        ctx.cursors.compare_and_set_value(user_id, LEADER_FEED_KEY, cursor.value, leader.id)
        report.add(FILTERED, key, user_id=user_id)
        return
    title, body = leader_change_message(leader, runner_up)
    deliver(
        ctx,
        user_id=user_id,
        category=CATEGORY,
        type="motorsport_championship_change",
        title=title,
        body=body,
        data={"new_leader": leader.id, "previous_leader": cursor.value, "deep_link": DEEP_LINK},
    )
    ctx.cursors.compare_and_set_value(user_id, LEADER_FEED_KEY, cursor.value, leader.id)
    report.add(SENT, key, user_id=user_id)


def _favorite_lead(ctx: TriggerContext, report: RunReport, user_id: str, prefs: PreferenceSet, leader, runner_up) -> None:
    if prefs.favorite_driver is None:
        return
    key = f"favorite_leader:{leader.id}"
    cursor = ctx.cursors.get(user_id, FAVORITE_LEADER_FEED_KEY)
    if cursor.value is None:
        ctx.cursors.compare_and_set_value(user_id, FAVORITE_LEADER_FEED_KEY, None, leader.id)
        report.add(INITIALIZED, key, user_id=user_id)
        return
    if cursor.value == leader.id:
        return
    candidate = Candidate(
        MOTORSPORT,
        subtypes=("motorsport_favorite_win",),
        spoiler=True,
        favorite_entity=(leader.id, leader.name),
    )
    if allowed(prefs, candidate):
        title, body = favorite_leads_message(leader, runner_up)
        deliver(
            ctx,
            user_id=user_id,
            category=CATEGORY,
            type="motorsport_favorite_leading",
            title=title,
            body=body,
            data={"driver_id": leader.id, "deep_link": DEEP_LINK},
        )
        report.add(SENT, key, user_id=user_id)
    ctx.cursors.compare_and_set_value(user_id, FAVORITE_LEADER_FEED_KEY, cursor.value, leader.id)


def run_standings(ctx: TriggerContext, report: RunReport) -> None:
    parsed = ctx.feeds.standings()
    report.add_malformed(parsed.malformed)
    ranked = sorted(parsed.items, key=lambda e: e.score, reverse=True)
    if not ranked:
        logger.debug("No standings data yet")
        return
    leader = ranked[0]
    runner_up = ranked[1] if len(ranked) > 1 else None
    report.stats["ranked_entities"] = len(ranked)

    user_ids = ctx.recipients.recipient_ids()
    prefs = ctx.preferences.get_many(user_ids)
    for user_id in user_ids:
        if stop_if_expired(ctx, report):
            break
        with report.attempt(f"leader:{user_id}", user_id):
            _leader_change(ctx, report, user_id, prefs[user_id], leader, runner_up)
        with report.attempt(f"favorite_leader:{user_id}", user_id):
            _favorite_lead(ctx, report, user_id, prefs[user_id], leader, runner_up)
