"""Business calendar: resolves whether the salon is open on a date and its hours.

Resolution order: date-specific override, then the weekday default, then the
global default hours. Every date resolves to a value.
"""
import logging
import time as _time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salonbook.core.config import settings
from salonbook.core.errors import InvalidInput, NotFound
from salonbook.models.calendar import (
    BusinessHours,
    BusinessHoursUpdate,
    SpecialBusinessDay,
    SpecialBusinessDayCreate,
)
from salonbook.services.dates import parse_date, parse_time, weekday_sunday_first

logger = logging.getLogger(__name__)

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


@dataclass(frozen=True)
class DayAvailability:
    is_open: bool
    open_time: str | None = None
    close_time: str | None = None

    def bounds(self, d: date) -> tuple[datetime, datetime]:
        """Opening and closing instants on ``d``; only meaningful when open."""
        return (
            datetime.combine(d, parse_time(self.open_time or settings.default_open_time)),
            datetime.combine(d, parse_time(self.close_time or settings.default_close_time)),
        )

    @property
    def label(self) -> str:
        return f"{self.open_time} - {self.close_time}"


async def resolve_business_hours(session: AsyncSession, d: date) -> DayAvailability:
    result = await session.execute(
        select(SpecialBusinessDay).where(SpecialBusinessDay.date == d)
    )
    special = result.scalar_one_or_none()
    if special is not None:
        if not special.is_open:
            return DayAvailability(is_open=False)
        return DayAvailability(
            is_open=True,
            open_time=special.open_time or settings.default_open_time,
            close_time=special.close_time or settings.default_close_time,
        )

    result = await session.execute(
        select(BusinessHours).where(BusinessHours.day_of_week == weekday_sunday_first(d))
    )
    weekday = result.scalar_one_or_none()
    if weekday is None:
        return DayAvailability(
            is_open=True,
            open_time=settings.default_open_time,
            close_time=settings.default_close_time,
        )
    return DayAvailability(
        is_open=weekday.is_open,
        open_time=weekday.open_time,
        close_time=weekday.close_time,
    )


class BusinessCalendar:
    """TTL cache in front of :func:`resolve_business_hours`.

    One instance is shared by the app; admin writes call :meth:`invalidate`.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = _time.monotonic,
    ):
        self.ttl_seconds = settings.business_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: dict[date, tuple[float, DayAvailability]] = {}

    async def resolve(self, session: AsyncSession, d: date) -> DayAvailability:
        now = self._clock()
        self._evict_expired(now)
        cached = self._entries.get(d)
        if cached is not None:
            return cached[1]
        availability = await resolve_business_hours(session, d)
        self._entries[d] = (now, availability)
        return availability

    def _evict_expired(self, now: float) -> None:
        expired = [d for d, (stored_at, _) in self._entries.items() if now - stored_at >= self.ttl_seconds]
        for d in expired:
            del self._entries[d]

    def invalidate(self) -> None:
        self._entries.clear()
        logger.debug("Business calendar cache invalidated")


business_calendar = BusinessCalendar()


def _validate_hours(open_time: str | None, close_time: str | None) -> None:
    if open_time is None or close_time is None:
        return
    if parse_time(close_time) <= parse_time(open_time):
        raise InvalidInput("Closing time must be after opening time")


async def initialize_default_hours(session: AsyncSession, calendar: BusinessCalendar) -> int:
    """Create the seven weekday rows (Sunday closed) if none exist. Returns rows created."""
    result = await session.execute(select(BusinessHours.id).limit(1))
    if result.first() is not None:
        return 0
    for day in range(7):
        session.add(
            BusinessHours(
                day_of_week=day,
                is_open=day != 0,
                open_time=settings.default_open_time,
                close_time=settings.default_close_time,
            )
        )
    await session.commit()
    calendar.invalidate()
    return 7


async def list_business_hours(session: AsyncSession) -> list[BusinessHours]:
    result = await session.execute(select(BusinessHours).order_by(BusinessHours.day_of_week))
    return list(result.scalars().all())


async def update_business_hours(
    session: AsyncSession, calendar: BusinessCalendar, data: BusinessHoursUpdate
) -> BusinessHours:
    result = await session.execute(
        select(BusinessHours).where(BusinessHours.day_of_week == data.day_of_week)
    )
    row = result.scalar_one_or_none()
    if row is None:
        raise NotFound(f"Business hours for day {data.day_of_week} not found")
    open_time = data.open_time or row.open_time
    close_time = data.close_time or row.close_time
    _validate_hours(open_time, close_time)
    row.is_open = data.is_open
    row.open_time = open_time
    row.close_time = close_time
    session.add(row)
    await session.commit()
    calendar.invalidate()
    logger.info("Business hours updated for %s", DAY_NAMES[data.day_of_week])
    return row


async def list_special_days(session: AsyncSession) -> list[SpecialBusinessDay]:
    result = await session.execute(select(SpecialBusinessDay).order_by(SpecialBusinessDay.date))
    return list(result.scalars().all())


async def add_special_day(
    session: AsyncSession, calendar: BusinessCalendar, data: SpecialBusinessDayCreate
) -> SpecialBusinessDay:
    """Create or replace the override for a date."""
    d = parse_date(data.date)
    _validate_hours(data.open_time, data.close_time)
    result = await session.execute(select(SpecialBusinessDay).where(SpecialBusinessDay.date == d))
    row = result.scalar_one_or_none()
    if row is None:
        row = SpecialBusinessDay(date=d)
    row.is_open = data.is_open
    row.open_time = data.open_time
    row.close_time = data.close_time
    row.reason = data.reason
    session.add(row)
    await session.commit()
    await session.refresh(row)
    calendar.invalidate()
    return row


async def remove_special_day(session: AsyncSession, calendar: BusinessCalendar, special_day_id: int) -> None:
    row = await session.get(SpecialBusinessDay, special_day_id)
    if row is None:
        raise NotFound(f"Special day #{special_day_id} not found")
    await session.delete(row)
    await session.commit()
    calendar.invalidate()
