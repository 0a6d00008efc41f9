"""Feed client: lowest level, GET one JSON document. Parsing and per-item validation below."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from familynotify.config import settings
from familynotify.core.errors import ConfigurationError, DataFetchError, MalformedCandidate
from familynotify.services.feeds.types import (
    BinCollection,
    CalendarEvent,
    Chore,
    NewsItem,
    RankedEntity,
    Routine,
    ScheduledSession,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class FeedClient:
    def __init__(self, url: str, *, name: str, timeout: float | None = None, transport: httpx.BaseTransport | None = None):
        self.url = (url or "").strip()
        self.name = name
        self.timeout = timeout if timeout is not None else settings.feed_timeout_seconds
        self._transport = transport

    def fetch_json(self) -> Any:
        """Raises ConfigurationError when no URL is set, DataFetchError when the feed cannot be read."""
        if not self.url:
            raise ConfigurationError(f"{self.name} feed URL not configured")
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as c:
                r = c.get(self.url, headers={"accept": "application/json"})
        except httpx.HTTPError as e:
            raise DataFetchError(f"{self.name} feed unreachable: {e}") from e
        if not r.is_success:
            raise DataFetchError(f"{self.name} feed returned {r.status_code}: {(r.text or '')[:200]}")
        try:
            return r.json()
        except ValueError as e:
            raise DataFetchError(f"{self.name} feed returned invalid JSON") from e


@dataclass
class ParsedFeed(Generic[T]):
    items: list = field(default_factory=list)
    malformed: list[MalformedCandidate] = field(default_factory=list)


def _raw_items(raw: Any, keys: Iterable[str]) -> list:
    if isinstance(raw, list):
        return raw
    if isinstance(raw, dict):
        for key in keys:
            value = raw.get(key)
            if isinstance(value, list):
                return value
    raise DataFetchError(f"unexpected feed document: expected a list or one of {list(keys)}")


def parse_items(raw: Any, model: type[T], *, keys: Iterable[str] = ("items",)) -> ParsedFeed[T]:
    """Validate each item independently; bad items become MalformedCandidate entries, not errors."""
    parsed: ParsedFeed[T] = ParsedFeed()
    for index, entry in enumerate(_raw_items(raw, tuple(keys))):
        item_id = str(entry.get("id")) if isinstance(entry, dict) and entry.get("id") is not None else f"#{index}"
        try:
            parsed.items.append(model.model_validate(entry))
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            parsed.malformed.append(MalformedCandidate(f"{model.__name__} {item_id}: invalid {fields}", item_id=item_id))
    if parsed.malformed:
        logger.warning("Skipped %s malformed %s item(s)", len(parsed.malformed), model.__name__)
    return parsed


def _flatten_schedule(raw: Any) -> list:
    """Accept either a flat session list or meetings with nested sessions."""
    entries = _raw_items(raw, ("sessions", "schedule", "items"))
    flat = []
    for entry in entries:
        if isinstance(entry, dict) and isinstance(entry.get("sessions"), list):
            for session in entry["sessions"]:
                if isinstance(session, dict):
                    flat.append({
                        "meeting_name": entry.get("meeting_name"),
                        "circuit_short_name": entry.get("circuit_short_name"),
                        "country_name": entry.get("country_name"),
                        **session,
                    })
        else:
            flat.append(entry)
    return flat


class HttpFeeds:
    """All source feeds a driver may read, backed by the configured URLs."""

    def __init__(self, transport: httpx.BaseTransport | None = None):
        self._transport = transport

    def _client(self, url: str, name: str) -> FeedClient:
        return FeedClient(url, name=name, transport=self._transport)

    def news(self) -> ParsedFeed[NewsItem]:
        raw = self._client(settings.news_feed_url, "news").fetch_json()
        return parse_items(raw, NewsItem, keys=("items", "news"))

    def standings(self) -> ParsedFeed[RankedEntity]:
        raw = self._client(settings.standings_feed_url, "standings").fetch_json()
        return parse_items(raw, RankedEntity, keys=("items", "drivers", "standings"))

    def sessions(self) -> ParsedFeed[ScheduledSession]:
        raw = self._client(settings.schedule_feed_url, "schedule").fetch_json()
        return parse_items(_flatten_schedule(raw), ScheduledSession)

    def calendar_events(self) -> ParsedFeed[CalendarEvent]:
        raw = self._client(settings.calendar_feed_url, "calendar").fetch_json()
        return parse_items(raw, CalendarEvent, keys=("items", "events"))

    def routines(self) -> ParsedFeed[Routine]:
        raw = self._client(settings.routines_feed_url, "routines").fetch_json()
        return parse_items(raw, Routine, keys=("items", "routines"))

    def bin_collections(self) -> ParsedFeed[BinCollection]:
        raw = self._client(settings.bins_feed_url, "bins").fetch_json()
        return parse_items(raw, BinCollection, keys=("items", "collections", "bins"))

    def chores(self) -> ParsedFeed[Chore]:
        raw = self._client(settings.chores_feed_url, "chores").fetch_json()
        return parse_items(raw, Chore, keys=("items", "chores"))
