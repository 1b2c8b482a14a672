from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from salonbook.core.config import settings
from salonbook.core.errors import InvalidInput
from salonbook.models.appointment import ACTIVE_STATUSES, Appointment
from salonbook.models.calendar import TimeBlock
from salonbook.models.service import Service
from salonbook.services.calendar_service import BusinessCalendar
from salonbook.services.dates import day_bounds, format_hhmm, parse_date


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Half-open [start, end) overlap; touching intervals do not overlap."""
    return a_start < b_end and a_end > b_start


def _overlap_clause(start_col, end_col, start: datetime, end: datetime):
    # SQL form of intervals_overlap
    return and_(start_col < end, end_col > start)


@dataclass
class Slot:
    start: datetime
    formatted_time: str
    duration_minutes: int


@dataclass
class DaySlots:
    date: date
    is_open: bool
    business_hours: str | None = None
    slots: list[Slot] = field(default_factory=list)


async def find_overlapping_appointments(
    session: AsyncSession,
    start: datetime,
    end: datetime,
    exclude_id: int | None = None,
) -> list[Appointment]:
    """Active appointments whose interval overlaps [start, end)."""
    q = select(Appointment).where(
        Appointment.status.in_(ACTIVE_STATUSES),
        _overlap_clause(Appointment.start_at, Appointment.end_at, start, end),
    )
    if exclude_id is not None:
        q = q.where(Appointment.id != exclude_id)
    result = await session.execute(q.order_by(Appointment.start_at))
    return list(result.scalars().all())


async def find_overlapping_time_blocks(
    session: AsyncSession, start: datetime, end: datetime
) -> list[TimeBlock]:
    result = await session.execute(
        select(TimeBlock)
        .where(_overlap_clause(TimeBlock.start_at, TimeBlock.end_at, start, end))
        .order_by(TimeBlock.start_at)
    )
    return list(result.scalars().all())


async def has_conflict(
    session: AsyncSession,
    start: datetime,
    end: datetime,
    exclude_id: int | None = None,
) -> bool:
    if await find_overlapping_appointments(session, start, end, exclude_id):
        return True
    return bool(await find_overlapping_time_blocks(session, start, end))


async def get_service(session: AsyncSession, service_id: int) -> Service:
    service = await session.get(Service, service_id)
    if service is None:
        raise InvalidInput(f"Service #{service_id} not found")
    if not service.active:
        raise InvalidInput(f"Service #{service_id} is not available")
    return service


async def compute_available_slots(
    session: AsyncSession,
    calendar: BusinessCalendar,
    day: str | date,
    service_id: int | None = None,
) -> DaySlots:
    """Bookable start times on ``day`` in chronological order.

    Candidates sit on the slot granularity from opening time; each occupies the
    service duration (or one granule) and must end by closing time and overlap
    no active appointment or blackout window.
    """
    d = parse_date(day)
    availability = await calendar.resolve(session, d)
    if not availability.is_open:
        return DaySlots(date=d, is_open=False)

    granularity = timedelta(minutes=settings.slot_granularity_minutes)
    duration_minutes = settings.slot_granularity_minutes
    if service_id is not None:
        duration_minutes = (await get_service(session, service_id)).duration_minutes
    duration = timedelta(minutes=duration_minutes)

    opens, closes = availability.bounds(d)
    day_start, day_end = day_bounds(d)
    busy = [
        (a.start_at, a.end_at)
        for a in await find_overlapping_appointments(session, day_start, day_end)
    ]
    busy += [
        (b.start_at, b.end_at)
        for b in await find_overlapping_time_blocks(session, day_start, day_end)
    ]

    slots: list[Slot] = []
    candidate = opens
    while candidate < closes:
        candidate_end = candidate + duration
        if candidate_end <= closes and not any(
            intervals_overlap(candidate, candidate_end, s, e) for s, e in busy
        ):
            slots.append(
                Slot(
                    start=candidate,
                    formatted_time=format_hhmm(candidate),
                    duration_minutes=duration_minutes,
                )
            )
        candidate += granularity

    return DaySlots(date=d, is_open=True, business_hours=availability.label, slots=slots)
