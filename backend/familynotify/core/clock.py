"""Time helpers: everything is compared and stored in UTC; local time is only for schedules and copy."""
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from familynotify.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_tz() -> ZoneInfo:
    return ZoneInfo(settings.local_timezone)


def to_local(value: datetime) -> datetime:
    return ensure_utc(value).astimezone(local_tz())


def format_local_time(value: datetime) -> str:
    """20:30 style, in the household timezone."""
    return to_local(value).strftime("%H:%M")


def format_local_date(value: datetime) -> str:
    """'Sat 14 Mar' style, in the household timezone."""
    local = to_local(value)
    return f"{local:%a} {local.day} {local:%b}"
