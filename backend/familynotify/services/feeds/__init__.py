"""Read-only source feeds (news, standings, schedule, calendar, routines, bins, chores) over HTTP."""
from familynotify.services.feeds.client import FeedClient, HttpFeeds, ParsedFeed, parse_items
from familynotify.services.feeds.types import (
    BinCollection,
    CalendarEvent,
    Chore,
    NewsItem,
    RankedEntity,
    Routine,
    RoutineStep,
    ScheduledSession,
)

__all__ = [
    "BinCollection",
    "CalendarEvent",
    "Chore",
    "FeedClient",
    "HttpFeeds",
    "NewsItem",
    "ParsedFeed",
    "RankedEntity",
    "Routine",
    "RoutineStep",
    "ScheduledSession",
    "parse_items",
]
