"""
Typed feed items. Field aliases accept both our snake_case names and the upstream app's
camelCase names (pubDate, isInteresting, driverId, session_key, ...).

Every intrinsic timestamp is normalized to aware UTC. A missing required field makes the item
fail validation; the feed client turns that into a MalformedCandidate and skips the item.
"""
from datetime import date, datetime, time
from email.utils import parsedate_to_datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from familynotify.core.clock import ensure_utc


def _parse_timestamp(value):
    # RFC 822 dates from RSS (e.g. "Sat, 14 Mar 2026 10:00:00 GMT"); ISO strings go to pydantic
    if isinstance(value, str) and value and not value[0].isdigit():
        try:
            return parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return value
    return value


class FeedItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


class NewsItem(FeedItem):
    id: str
    title: str
    body: str = Field(default="", validation_alias=AliasChoices("body", "description"))
    published_at: datetime = Field(validation_alias=AliasChoices("published_at", "pubDate"))
    interesting: bool = Field(default=False, validation_alias=AliasChoices("interesting", "isInteresting"))
    spoiler: bool = Field(default=False, validation_alias=AliasChoices("spoiler", "isSpoiler"))
    category: Optional[str] = None
    link: Optional[str] = None

    @field_validator("published_at", mode="before")
    @classmethod
    def parse_published_at(cls, v):
        return _parse_timestamp(v)

    @field_validator("published_at", mode="after")
    @classmethod
    def utc_published_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("body", mode="before")
    @classmethod
    def none_body(cls, v):
        return v or ""

    def mentions(self, name: Optional[str]) -> bool:
        if not name:
            return False
        needle = name.strip().lower()
        return needle in self.title.lower() or needle in self.body.lower()


class RankedEntity(FeedItem):
    """One row of a leaderboard (championship standings)."""

    id: str = Field(validation_alias=AliasChoices("id", "driverId"))
    name: str = Field(validation_alias=AliasChoices("name", "familyName"))
    score: float = Field(validation_alias=AliasChoices("score", "points"))
    given_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("given_name", "givenName"))
    team: Optional[str] = Field(default=None, validation_alias=AliasChoices("team", "constructorName"))
    wins: Optional[int] = None

    @property
    def display_name(self) -> str:
        if self.given_name:
            return f"{self.given_name} {self.name.upper()}"
        return self.name


class ScheduledSession(FeedItem):
    id: str = Field(validation_alias=AliasChoices("id", "session_key"))
    name: str = Field(validation_alias=AliasChoices("name", "session_name"))
    start_time: datetime = Field(validation_alias=AliasChoices("start_time", "date_start"))
    parent: str = Field(default="", validation_alias=AliasChoices("parent", "meeting_name"))
    circuit: Optional[str] = Field(default=None, validation_alias=AliasChoices("circuit", "circuit_short_name"))
    country: Optional[str] = Field(default=None, validation_alias=AliasChoices("country", "country_name"))

    @field_validator("start_time", mode="after")
    @classmethod
    def utc_start_time(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class CalendarEvent(FeedItem):
    id: str
    user_id: str
    title: str
    start_time: datetime
    description: Optional[str] = None
    end_time: Optional[datetime] = None
    all_day: bool = False
    location: Optional[str] = None
    member_names: list[str] = Field(default_factory=list)
    source: Optional[str] = None  # manual | ai | google
    updated_at: Optional[datetime] = None

    @field_validator("start_time", "end_time", "updated_at", mode="after")
    @classmethod
    def utc_times(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class RoutineStep(FeedItem):
    title: str
    emoji: str = ""


class Routine(FeedItem):
    id: str
    user_id: str
    title: str
    scheduled_time: time
    emoji: Optional[str] = None
    type: str = "custom"  # morning | evening | custom
    schedule_type: str = "daily"  # daily | weekdays | weekends | custom
    schedule_days: Optional[list[int]] = None  # 0 = Sunday ... 6 = Saturday
    points_reward: int = 0
    reminder_enabled: bool = True
    steps: list[RoutineStep] = Field(default_factory=list)
    member_names: list[str] = Field(default_factory=list)

    def runs_on(self, weekday: int) -> bool:
        """weekday uses 0 = Sunday ... 6 = Saturday."""
        if self.schedule_type == "weekdays":
            return 1 <= weekday <= 5
        if self.schedule_type == "weekends":
            return weekday in (0, 6)
        if self.schedule_type == "custom" and self.schedule_days:
            return weekday in self.schedule_days
        return True


class BinCollection(FeedItem):
    """One waste bin pickup on the household's collection schedule."""

    bin_type: str = Field(validation_alias=AliasChoices("bin_type", "type", "id"))
    name: str
    collection_date: date = Field(validation_alias=AliasChoices("collection_date", "date"))
    emoji: str = "🗑️"


class Chore(FeedItem):
    id: str
    user_id: str
    title: str
    assigned_to: Optional[str] = None
    status: str = "pending"
    due_date: Optional[date] = None

    def due_on(self, day: date) -> bool:
        """Undated chores are due every day until done."""
        return self.status == "pending" and (self.due_date is None or self.due_date == day)
