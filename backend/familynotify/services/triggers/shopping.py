"""
Shopping list changes (debounced aggregation, every 10 min).

Per author, edits are held until the author has been quiet for shopping_quiet_period_minutes,
then one summary goes to every channel holder. The author only gets it when they have not turned
off shopping_notify_own_changes (default on). The batch's events are deleted once at least one
recipient got it, or when nobody was eligible; if every send failed they stay for the next run.
"""
import logging
from datetime import timedelta

from familynotify.config import settings
from familynotify.services.debounce import ChangeEventLog, split_batches, summarize_changes
from familynotify.services.preferences import SHOPPING, Candidate, allowed, notify_self
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

CATEGORY = "shopping"
TITLE = "🛒 Shopping List Updated"


def run_shopping(ctx: TriggerContext, report: RunReport) -> None:
    quiet = timedelta(minutes=settings.shopping_quiet_period_minutes)
    log = ChangeEventLog(ctx.db)
    events = log.fetch_window(ctx.now, quiet)
    batches = split_batches(events, ctx.now, quiet)
    report.stats["change_events"] = len(events)

    recipients, prefs = [], {}
    if any(b.ready for b in batches):
        recipients = ctx.recipients.recipient_ids()
        prefs = ctx.preferences.get_many([*recipients, *(b.user_id for b in batches)])
    candidate = Candidate(SHOPPING, subtypes=("shopping_list_changes",))

    for batch in batches:
        key = f"shopping:{batch.user_id}:{batch.newest_at.isoformat()}"
        if not batch.ready:
            report.add(SKIPPED, key, user_id=batch.user_id, detail="still editing")
            continue
        if stop_if_expired(ctx, report):
            break
        eligible = [
            uid
            for uid in recipients
            if allowed(prefs[uid], candidate)
            and (uid != batch.user_id or notify_self(prefs[uid], "shopping_notify_own_changes", default=True))
        ]
        if not eligible:
            log.delete(batch.event_ids)
            report.add(FILTERED, key, user_id=batch.user_id, detail="no eligible recipients")
            continue

        body = summarize_changes(batch.events)
        delivered = 0
        for user_id in eligible:
            with report.attempt(key, user_id):
                deliver(
                    ctx,
                    user_id=user_id,
                    category=CATEGORY,
                    type="shopping_list_update",
                    title=TITLE,
                    body=body,
                    data={"change_count": len(batch.events), "author_id": batch.user_id, "deep_link": "/shopping"},
                )
                delivered += 1
                report.add(SENT, key, user_id=user_id)
        if delivered:
            log.delete(batch.event_ids)
        else:
            logger.warning("Shopping batch %s not delivered to anyone; kept for retry", key)

    report.stats["expired_events"] = log.prune(ctx.now - 2 * quiet)
