"""
Bin day reminders (daily broadcast, polled every 15 min).

From bin_reminder_hour local time onwards, every channel holder hears about tomorrow's pickups
once. The mark is keyed on the collection date, so a missed evening catches up on the next poll
that same day and never repeats.
"""
import logging
from datetime import timedelta

from familynotify.config import settings
from familynotify.core.clock import to_local
from familynotify.core.constants import BIN_REMINDER_DOMAIN
from familynotify.services.preferences import BINS, Candidate, allowed
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

CATEGORY = "bins"
BUCKET = "evening"


def bin_day_message(collections) -> tuple[str, str]:
    emojis = " ".join(c.emoji for c in collections)
    names = " & ".join(c.name for c in collections)
    return f"{emojis} Bin Day Tomorrow!", f"Put out the {names}"


def run_bins(ctx: TriggerContext, report: RunReport) -> None:
    local_now = to_local(ctx.now)
    if local_now.hour < settings.bin_reminder_hour:
        logger.debug("Before %s:00 local; bin reminders not due yet", settings.bin_reminder_hour)
        return

    tomorrow = local_now.date() + timedelta(days=1)
    parsed = ctx.feeds.bin_collections()
    report.add_malformed(parsed.malformed)
    collections = sorted((c for c in parsed.items if c.collection_date == tomorrow), key=lambda c: c.bin_type)
    report.stats["bins_tomorrow"] = len(collections)
    if not collections:
        logger.debug("No bins collected on %s", tomorrow)
        return

    title, body = bin_day_message(collections)
    item_id = tomorrow.isoformat()
    user_ids = ctx.recipients.recipient_ids()
    prefs = ctx.preferences.get_many(user_ids)
    candidate = Candidate(BINS, subtypes=("bin_day_reminder",))
    for user_id in user_ids:
        if stop_if_expired(ctx, report):
            return
        key = f"bins:{item_id}"
        with report.attempt(key, user_id):
            if not allowed(prefs[user_id], candidate):
                report.add(FILTERED, key, user_id=user_id)
                continue
            if ctx.cursors.was_reminded(user_id, BIN_REMINDER_DOMAIN, BUCKET, item_id):
                report.add(SKIPPED, key, user_id=user_id, detail="already reminded")
                continue
            deliver(
                ctx,
                user_id=user_id,
                category=CATEGORY,
                type="bin_reminder",
                title=title,
                body=body,
                data={
                    "bins": [c.bin_type for c in collections],
                    "collection_date": item_id,
                    "deep_link": "/bindicator",
                },
            )
            ctx.cursors.mark_reminded(user_id, BIN_REMINDER_DOMAIN, BUCKET, item_id, at=ctx.now)
            report.add(SENT, key, user_id=user_id)
