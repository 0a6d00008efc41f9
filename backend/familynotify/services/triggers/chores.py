"""
Daily chore digest (polled every 15 min, sent once per owner per local day).

Pending chores due today, or with no due date, are grouped by owner. From chore_digest_hour
local time each owner with a delivery channel gets one digest listing the first few titles.
"""
import logging
from collections import defaultdict

from familynotify.config import settings
from familynotify.core.clock import to_local
from familynotify.core.constants import CHORE_DIGEST_DOMAIN, CHORE_TITLES_LISTED
from familynotify.services.preferences import CHORES, Candidate, allowed
from familynotify.services.triggers.base import (
    FILTERED,
    SENT,
    SKIPPED,
    RunReport,
    TriggerContext,
    deliver,
    stop_if_expired,
)

logger = logging.getLogger(__name__)

CATEGORY = "chores"
BUCKET = "daily"


def chore_digest_message(chores) -> tuple[str, str]:
    count = len(chores)
    title = f"{count} chore{'s' if count > 1 else ''} for today"
    body = ", ".join(c.title for c in chores[:CHORE_TITLES_LISTED])
    if count > CHORE_TITLES_LISTED:
        body += f" +{count - CHORE_TITLES_LISTED} more"
    return title, body


def run_chores(ctx: TriggerContext, report: RunReport) -> None:
    local_now = to_local(ctx.now)
    if local_now.hour < settings.chore_digest_hour:
        logger.debug("Before %s:00 local; chore digest not due yet", settings.chore_digest_hour)
        return

    today = local_now.date()
    parsed = ctx.feeds.chores()
    report.add_malformed(parsed.malformed)
    by_owner = defaultdict(list)
    for chore in parsed.items:
        if chore.due_on(today):
            by_owner[chore.user_id].append(chore)
    report.stats["chores_due"] = sum(len(c) for c in by_owner.values())
    if not by_owner:
        logger.debug("No chores due on %s", today)
        return

    holders = set(ctx.recipients.recipient_ids())
    prefs = ctx.preferences.get_many(by_owner)
    item_id = today.isoformat()
    candidate = Candidate(CHORES, subtypes=("chore_daily_digest",))
    for owner, chores in by_owner.items():
        if stop_if_expired(ctx, report):
            return
        key = f"chores:{owner}:{item_id}"
        with report.attempt(key, owner):
            if owner not in holders:
                report.add(SKIPPED, key, user_id=owner, detail="no delivery channel")
                continue
            if not allowed(prefs[owner], candidate):
                report.add(FILTERED, key, user_id=owner)
                continue
            if ctx.cursors.was_reminded(owner, CHORE_DIGEST_DOMAIN, BUCKET, item_id):
                report.add(SKIPPED, key, user_id=owner, detail="already reminded")
                continue
            title, body = chore_digest_message(chores)
            deliver(
                ctx,
                user_id=owner,
                category=CATEGORY,
                type="chore_reminder",
                title=title,
                body=body,
                data={
                    "chore_count": len(chores),
                    "chore_ids": [c.id for c in chores],
                    "deep_link": "/tasks",
                },
            )
            ctx.cursors.mark_reminded(owner, CHORE_DIGEST_DOMAIN, BUCKET, item_id, at=ctx.now)
            report.add(SENT, key, user_id=owner)
