"""
Motorsport news (feed dedup, every 30 min).

An item is new for a user iff its (published_at, id) is strictly after the user's cursor, so
items sharing one timestamp are never skipped when a batch cut falls between them. The first
observation only sets the watermark (no backlog burst). Each run sends at most news_batch_cap of
the oldest new items, one summary notification when more than one, then advances the watermark
to the newest published_at actually sent, never to wall-clock now.
"""
import logging

from familynotify.config import settings
from familynotify.core.constants import NEWS_FEED_KEY
from familynotify.services.preferences import MOTORSPORT, Candidate, PreferenceSet, allowed
from familynotify.services.triggers.base import (
    INITIALIZED,
    SENT,
    RunReport,
    TriggerContext,
    deliver,
    stop_if_expired,
    truncate,
)

logger = logging.getLogger(__name__)

CATEGORY = "motorsport"
DEEP_LINK = "/motorsport?tab=news"

# Category -> (emoji, headline prefix)
CATEGORY_INFO = {
    "race": ("🏁", "RACE NEWS"),
    "driver": ("👤", "DRIVER NEWS"),
    "technical": ("🔧", "TECH UPDATE"),
    "calendar": ("📅", "CALENDAR"),
    "other": ("📰", "MOTORSPORT NEWS"),
}


def _category_info(category):
    return CATEGORY_INFO.get((category or "other").lower(), CATEGORY_INFO["other"])


def build_news_message(items, prefs: PreferenceSet) -> tuple[str, str, dict]:
    """Single item: rich headline. Several: one summary listing each headline."""
    if len(items) == 1:
        item = items[0]
        emoji, prefix = _category_info(item.category)
        title = f"{emoji} {prefix}"
        favorite = prefs.favorite_driver
        if favorite and item.mentions(favorite):
            title = f"{emoji} {favorite.upper()} NEWS"
        body = truncate(item.title, 80)
        if item.body:
            body += "\n" + truncate(item.body, 100)
        data = {
            "article_id": item.id,
            "category": item.category,
            "link": item.link,
            "deep_link": DEEP_LINK,
        }
        return title, body, data
    title = f"📰 {len(items)} New Motorsport Stories"
    body = "\n".join(f"{_category_info(i.category)[0]} {truncate(i.title, 50)}" for i in items)
    data = {"article_ids": [i.id for i in items], "article_count": len(items), "deep_link": DEEP_LINK}
    return title, body, data


def _is_new(item, cursor) -> bool:
    if item.published_at != cursor.watermark:
        return item.published_at > cursor.watermark
    # Same timestamp: only ids past the last one sent; without one, the whole timestamp was seen
    return cursor.item_id is not None and item.id > cursor.item_id


def _candidate(item) -> Candidate:
    return Candidate(
        MOTORSPORT,
        subtypes=("motorsport_news_enabled",),
        spoiler=item.spoiler,
        category=item.category or "other",
    )


def run_news(ctx: TriggerContext, report: RunReport) -> None:
    parsed = ctx.feeds.news()
    report.add_malformed(parsed.malformed)
    interesting = sorted((i for i in parsed.items if i.interesting), key=lambda i: (i.published_at, i.id))
    report.stats["interesting_items"] = len(interesting)
    if not interesting:
        logger.debug("No interesting news items")
        return

    user_ids = ctx.recipients.recipient_ids()
    prefs = ctx.preferences.get_many(user_ids)
    cursors = ctx.cursors.get_many(user_ids, NEWS_FEED_KEY)
    cap = max(1, settings.news_batch_cap)

    for user_id in user_ids:
        if stop_if_expired(ctx, report):
            break
        with report.attempt(f"news:{user_id}", user_id):
            user_prefs = prefs[user_id]
            cursor = cursors[user_id]
            eligible = [i for i in interesting if allowed(user_prefs, _candidate(i))]

            if cursor.watermark is None:
                newest = (eligible or interesting)[-1]
                ctx.cursors.initialize(user_id, NEWS_FEED_KEY, watermark=newest.published_at, item_id=newest.id)
                report.add(INITIALIZED, f"news:{newest.id}", user_id=user_id)
                continue

            fresh = [i for i in eligible if _is_new(i, cursor)]
            if not fresh:
                continue
            batch = fresh[:cap]
            title, body, data = build_news_message(batch, user_prefs)
            deliver(
                ctx,
                user_id=user_id,
                category=CATEGORY,
                type="motorsport_news" if len(batch) == 1 else "motorsport_news_summary",
                title=title,
                body=body,
                data=data,
            )
            newest = batch[-1]
            ctx.cursors.advance(user_id, NEWS_FEED_KEY, newest.published_at, newest.id)
            report.add(SENT, f"news:{newest.id}", user_id=user_id, detail=f"{len(batch)} item(s)")
