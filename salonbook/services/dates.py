from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from salonbook.core.config import settings
from salonbook.core.errors import InvalidInput


def utc_naive_now() -> datetime:
    """Naive UTC for comparison with TIMESTAMP WITHOUT TIME ZONE."""
    return datetime.now(UTC).replace(tzinfo=None)


def local_now() -> datetime:
    """Naive wall-clock time of the business.

    Appointment and notification instants are stored as naive business-local
    times because opening hours are expressed that way.
    """
    if settings.business_timezone:
        return datetime.now(ZoneInfo(settings.business_timezone)).replace(tzinfo=None)
    return datetime.now()


def parse_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        raise InvalidInput(f"Invalid date: {value!r} (expected YYYY-MM-DD)")


def parse_time(value: str) -> time:
    """Parse an ``HH:MM`` time-of-day string."""
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except (AttributeError, ValueError):
        raise InvalidInput(f"Invalid time: {value!r} (expected HH:MM)")


def combine(day: str | date, hhmm: str) -> datetime:
    return datetime.combine(parse_date(day), parse_time(hhmm))


def format_hhmm(dt: datetime | time) -> str:
    return f"{dt.hour:02d}:{dt.minute:02d}"


def day_bounds(d: date) -> tuple[datetime, datetime]:
    """Half-open [midnight, next midnight)."""
    start = datetime(d.year, d.month, d.day, 0, 0, 0)
    return start, start + timedelta(days=1)


def weekday_sunday_first(d: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return d.isoweekday() % 7
