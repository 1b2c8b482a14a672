import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from salonbook.core.errors import Conflict, InvalidInput, InvalidState, NotFound
from salonbook.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentStatus,
    can_transition,
)
from salonbook.models.notification import NotificationCategory
from salonbook.models.service import Service
from salonbook.models.user import User
from salonbook.services.booking_guard import BookingGuard, booking_guard
from salonbook.services.calendar_service import BusinessCalendar, business_calendar
from salonbook.services.dates import combine, day_bounds, local_now, utc_naive_now
from salonbook.services.notification_service import discard_pending_reminders, queue_appointment_notification
from salonbook.services.slot_service import get_service, has_conflict

logger = logging.getLogger(__name__)

NO_OVERLAP_CONSTRAINT = "appointments_no_overlap"
CONFLICT_MESSAGE = "Time slot unavailable. Please choose another time."


async def get_appointment(session: AsyncSession, appointment_id: int) -> Appointment:
    appointment = await session.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound(f"Appointment #{appointment_id} not found")
    return appointment


async def list_appointments(
    session: AsyncSession,
    user_id: int | None = None,
    status: AppointmentStatus | list[AppointmentStatus] | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[Appointment], int]:
    """Returns (page of appointments ordered by start, total matching)."""
    filters = []
    if user_id is not None:
        filters.append(Appointment.user_id == user_id)
    if status is not None:
        statuses = status if isinstance(status, list) else [status]
        filters.append(Appointment.status.in_(statuses))
    if start_date is not None:
        filters.append(Appointment.start_at >= day_bounds(start_date)[0])
    if end_date is not None:
        filters.append(Appointment.start_at < day_bounds(end_date)[1])

    total = (
        await session.execute(select(func.count()).select_from(Appointment).where(*filters))
    ).scalar_one()
    result = await session.execute(
        select(Appointment)
        .where(*filters)
        .order_by(Appointment.start_at)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def _check_business_hours(
    session: AsyncSession, calendar: BusinessCalendar, start: datetime, end: datetime
) -> None:
    availability = await calendar.resolve(session, start.date())
    if not availability.is_open:
        raise InvalidInput("The salon is closed on the selected date")
    opens, closes = availability.bounds(start.date())
    if start < opens or end > closes:
        raise InvalidInput("Selected time is outside business hours")


async def _commit_booking(session: AsyncSession) -> None:
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if NO_OVERLAP_CONSTRAINT in str(exc.orig):
            raise Conflict(CONFLICT_MESSAGE) from exc
        raise


async def _notify(
    session: AsyncSession, appointment: Appointment, category: NotificationCategory
) -> None:
    """Queue the event notification; failures never undo the booking."""
    try:
        await queue_appointment_notification(session, appointment, category)
        await session.commit()
    except Exception:
        logger.exception(
            "Failed to queue %s notification for appointment #%s", category.value, appointment.id
        )
        await session.rollback()
        await session.refresh(appointment)


def _require_transition(appointment: Appointment, target: AppointmentStatus) -> None:
    if not can_transition(appointment.status, target):
        raise InvalidState(
            f"Appointment #{appointment.id} is {appointment.status.value} and cannot become {target.value}"
        )


async def _admit(
    session: AsyncSession,
    calendar: BusinessCalendar,
    guard: BookingGuard,
    start: datetime,
    end: datetime,
    apply: Callable[[], Awaitable[None]],
    exclude_id: int | None = None,
) -> None:
    """Run the overlap and hours checks and ``apply`` the write as one unit."""
    async with guard.hold(session, start.date()):
        if await has_conflict(session, start, end, exclude_id=exclude_id):
            raise Conflict(CONFLICT_MESSAGE)
        await _check_business_hours(session, calendar, start, end)
        await apply()
        await _commit_booking(session)


async def create_appointment(
    session: AsyncSession,
    user_id: int | None,
    data: AppointmentCreate,
    calendar: BusinessCalendar = business_calendar,
    guard: BookingGuard = booking_guard,
    now: datetime | None = None,
) -> Appointment:
    if not user_id:
        raise InvalidInput("A valid user id is required")
    if await session.get(User, user_id) is None:
        raise InvalidInput(f"User #{user_id} not found")
    service = await get_service(session, data.service_id)

    start = combine(data.appointment_date, data.appointment_time)
    if start < (now or local_now()):
        raise InvalidInput("Cannot book a date/time in the past")
    end = start + timedelta(minutes=service.duration_minutes)

    appointment = Appointment(
        user_id=user_id,
        service_id=service.id,
        start_at=start,
        end_at=end,
        status=AppointmentStatus.SCHEDULED,
        notes=data.notes,
    )

    async def apply() -> None:
        session.add(appointment)

    await _admit(session, calendar, guard, start, end, apply)
    await session.refresh(appointment)
    logger.info("Appointment #%s created for user #%s at %s", appointment.id, user_id, start.isoformat())

    await _notify(session, appointment, NotificationCategory.APPOINTMENT_CONFIRMATION)
    return appointment


async def reschedule_appointment(
    session: AsyncSession,
    appointment_id: int,
    data: AppointmentReschedule,
    calendar: BusinessCalendar = business_calendar,
    guard: BookingGuard = booking_guard,
    now: datetime | None = None,
) -> Appointment:
    appointment = await get_appointment(session, appointment_id)
    _require_transition(appointment, AppointmentStatus.RESCHEDULED)
    service = await session.get(Service, appointment.service_id)
    if service is None:
        raise InvalidInput(f"Service for appointment #{appointment_id} not found")

    start = combine(data.appointment_date, data.appointment_time)
    if start < (now or local_now()):
        raise InvalidInput("Cannot reschedule to a date/time in the past")
    end = start + timedelta(minutes=service.duration_minutes)

    async def apply() -> None:
        appointment.start_at = start
        appointment.end_at = end
        appointment.status = AppointmentStatus.RESCHEDULED
        appointment.updated_at = utc_naive_now()
        session.add(appointment)
        # Reminders carry the old time; a fresh one is derived on the next run
        await discard_pending_reminders(session, appointment.id)

    await _admit(session, calendar, guard, start, end, apply, exclude_id=appointment.id)
    logger.info("Appointment #%s rescheduled to %s", appointment.id, start.isoformat())

    await _notify(session, appointment, NotificationCategory.APPOINTMENT_RESCHEDULED)
    return appointment


async def _set_status(
    session: AsyncSession, appointment: Appointment, target: AppointmentStatus
) -> Appointment:
    _require_transition(appointment, target)
    appointment.status = target
    appointment.updated_at = utc_naive_now()
    session.add(appointment)
    await session.commit()
    return appointment


async def cancel_appointment(session: AsyncSession, appointment_id: int) -> Appointment:
    """Mark CANCELED; the row is kept for history and frees its interval."""
    appointment = await get_appointment(session, appointment_id)
    if appointment.status == AppointmentStatus.COMPLETED:
        raise InvalidState("Cannot cancel a completed appointment")
    _require_transition(appointment, AppointmentStatus.CANCELED)
    await discard_pending_reminders(session, appointment.id)
    await _set_status(session, appointment, AppointmentStatus.CANCELED)
    logger.info("Appointment #%s canceled", appointment.id)

    await _notify(session, appointment, NotificationCategory.APPOINTMENT_CANCELLATION)
    return appointment


async def confirm_appointment(session: AsyncSession, appointment_id: int) -> Appointment:
    appointment = await get_appointment(session, appointment_id)
    await _set_status(session, appointment, AppointmentStatus.CONFIRMED)
    await _notify(session, appointment, NotificationCategory.APPOINTMENT_CONFIRMATION)
    return appointment


async def complete_appointment(session: AsyncSession, appointment_id: int) -> Appointment:
    appointment = await get_appointment(session, appointment_id)
    if appointment.status == AppointmentStatus.CANCELED:
        raise InvalidState("Cannot complete a canceled appointment")
    return await _set_status(session, appointment, AppointmentStatus.COMPLETED)
