"""
Date helpers for archival.

Every "today"/"yesterday" computation goes through an explicit clock and
timezone so that date boundaries do not depend on the host's local time.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pack_archive.exceptions import ConfigurationError, InvalidPayloadError

Clock = Callable[[], datetime]

DATE_FORMAT = '%Y-%m-%d'


def utc_now() -> datetime:
    """Default clock: current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def resolve_timezone(name: str):
    """Return a tzinfo for an IANA name; raises ConfigurationError if unknown."""
    if not name or name.upper() == 'UTC':
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Unknown archival timezone: {name}") from e


def local_today(clock: Clock, tz) -> date:
    """Calendar date of clock() as seen in tz."""
    now = clock()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(tz).date()


def previous_day(day: date) -> date:
    return day - timedelta(days=1)


def parse_iso_date(value: Union[str, date], field: str = 'date') -> date:
    """Parse a YYYY-MM-DD string (dates pass through unchanged)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), DATE_FORMAT).date()
    except ValueError as e:
        raise InvalidPayloadError(
            f"Invalid {field} '{value}', expected YYYY-MM-DD",
            payload={'field': field},
        ) from e


def date_range(start: date, end: date) -> List[date]:
    """Inclusive list of calendar days from start to end, ascending."""
    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days


def format_date(day: date) -> str:
    return day.strftime(DATE_FORMAT)


def isoformat_timestamp(value: Optional[Union[datetime, str]]) -> Optional[str]:
    """Render a timestamp as ISO 8601; naive datetimes are taken as UTC."""
    if value is None or isinstance(value, str):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_timestamp(value: Optional[Union[datetime, str]]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp into an aware datetime, or None if unparsable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
