import asyncio
from datetime import datetime, time

import pytest
from sqlalchemy import select

from salonbook.core.db import async_session_maker
from salonbook.core.errors import Conflict, InvalidInput, InvalidState, NotFound
from salonbook.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentStatus,
)
from salonbook.models.calendar import SpecialBusinessDayCreate
from salonbook.models.notification import Notification, NotificationCategory, NotificationStatus
from salonbook.services import appointment_service
from salonbook.services.appointment_service import (
    cancel_appointment,
    complete_appointment,
    confirm_appointment,
    create_appointment,
    get_appointment,
    list_appointments,
    reschedule_appointment,
)
from salonbook.services.booking_guard import BookingGuard
from salonbook.services.calendar_service import BusinessCalendar, add_special_day


def booking(service, day, hhmm: str) -> AppointmentCreate:
    return AppointmentCreate(service_id=service.id, appointment_date=day.isoformat(), appointment_time=hhmm)


async def notifications_for(session, appointment_id: int) -> list[Notification]:
    result = await session.execute(
        select(Notification).where(Notification.appointment_id == appointment_id).order_by(Notification.id)
    )
    return list(result.scalars().all())


async def test_create_sets_end_and_queues_confirmation(session, user, service, future_monday) -> None:
    appointment = await create_appointment(session, user.id, booking(service, future_monday, '10:00'))

    assert appointment.id is not None
    assert appointment.status == AppointmentStatus.SCHEDULED
    assert appointment.start_at == datetime.combine(future_monday, time(10, 0))
    assert appointment.end_at == datetime.combine(future_monday, time(10, 30))

    [notification] = await notifications_for(session, appointment.id)
    assert notification.category == NotificationCategory.APPOINTMENT_CONFIRMATION
    assert notification.status == NotificationStatus.PENDING
    assert 'Haircut' in notification.content


@pytest.mark.parametrize('hhmm', ['10:00', '10:15', '09:45'])
async def test_create_overlapping_taken_slot_conflicts(session, user, service, future_monday, make_appointment, hhmm: str) -> None:
    await make_appointment(datetime.combine(future_monday, time(10, 0)))

    with pytest.raises(Conflict):
        await create_appointment(session, user.id, booking(service, future_monday, hhmm))


async def test_back_to_back_bookings_are_allowed(session, user, service, future_monday, make_appointment) -> None:
    await make_appointment(datetime.combine(future_monday, time(10, 0)))

    before = await create_appointment(session, user.id, booking(service, future_monday, '09:30'))
    after = await create_appointment(session, user.id, booking(service, future_monday, '10:30'))

    assert before.end_at == datetime.combine(future_monday, time(10, 0))
    assert after.start_at == datetime.combine(future_monday, time(10, 30))


@pytest.mark.parametrize('hhmm', ['17:45', '07:30', '18:00'])
async def test_outside_business_hours_is_invalid_input(session, user, service, future_monday, hhmm: str) -> None:
    with pytest.raises(InvalidInput):
        await create_appointment(session, user.id, booking(service, future_monday, hhmm))


async def test_closed_day_is_invalid_input(session, user, service, future_monday) -> None:
    calendar = BusinessCalendar()
    await add_special_day(session, calendar, SpecialBusinessDayCreate(date=future_monday.isoformat(), is_open=False))
    await session.commit()

    with pytest.raises(InvalidInput):
        await create_appointment(session, user.id, booking(service, future_monday, '10:00'), calendar=calendar)


async def test_past_time_is_invalid_input(session, user, service, future_monday) -> None:
    now = datetime.combine(future_monday, time(12, 0))

    with pytest.raises(InvalidInput):
        await create_appointment(session, user.id, booking(service, future_monday, '11:30'), now=now)


async def test_unknown_references_and_bad_input(session, user, service, future_monday) -> None:
    with pytest.raises(InvalidInput):
        await create_appointment(session, 999, booking(service, future_monday, '10:00'))
    with pytest.raises(InvalidInput):
        await create_appointment(
            session,
            user.id,
            AppointmentCreate(service_id=999, appointment_date=future_monday.isoformat(), appointment_time='10:00'),
        )
    with pytest.raises(InvalidInput):
        await create_appointment(
            session,
            user.id,
            AppointmentCreate(service_id=service.id, appointment_date=future_monday.isoformat(), appointment_time='10h'),
        )


async def test_reschedule_to_own_time_does_not_conflict(session, user, service, future_monday) -> None:
    appointment = await create_appointment(session, user.id, booking(service, future_monday, '10:00'))

    moved = await reschedule_appointment(
        session,
        appointment.id,
        AppointmentReschedule(appointment_date=future_monday.isoformat(), appointment_time='10:00'),
    )

    assert moved.status == AppointmentStatus.RESCHEDULED
    assert moved.start_at == datetime.combine(future_monday, time(10, 0))
    categories = [n.category for n in await notifications_for(session, appointment.id)]
    assert categories == [
        NotificationCategory.APPOINTMENT_CONFIRMATION,
        NotificationCategory.APPOINTMENT_RESCHEDULED,
    ]


async def test_reschedule_onto_another_booking_conflicts(session, user, service, future_monday, make_appointment) -> None:
    await make_appointment(datetime.combine(future_monday, time(14, 0)))
    appointment = await create_appointment(session, user.id, booking(service, future_monday, '10:00'))

    with pytest.raises(Conflict):
        await reschedule_appointment(
            session,
            appointment.id,
            AppointmentReschedule(appointment_date=future_monday.isoformat(), appointment_time='14:00'),
        )
    assert (await get_appointment(session, appointment.id)).start_at == datetime.combine(future_monday, time(10, 0))


async def test_cancel_frees_the_interval(session, user, service, future_monday) -> None:
    appointment = await create_appointment(session, user.id, booking(service, future_monday, '10:00'))

    canceled = await cancel_appointment(session, appointment.id)
    assert canceled.status == AppointmentStatus.CANCELED

    again = await create_appointment(session, user.id, booking(service, future_monday, '10:00'))
    assert again.id != appointment.id


async def test_cancel_completed_is_invalid_state(session, future_monday, make_appointment) -> None:
    appointment = await make_appointment(
        datetime.combine(future_monday, time(10, 0)), status=AppointmentStatus.COMPLETED
    )

    with pytest.raises(InvalidState):
        await cancel_appointment(session, appointment.id)


async def test_canceled_booking_rejects_further_transitions(session, future_monday, make_appointment) -> None:
    appointment = await make_appointment(datetime.combine(future_monday, time(10, 0)), status=AppointmentStatus.CANCELED)

    with pytest.raises(InvalidState):
        await cancel_appointment(session, appointment.id)
    with pytest.raises(InvalidState):
        await complete_appointment(session, appointment.id)
    with pytest.raises(InvalidState):
        await reschedule_appointment(
            session,
            appointment.id,
            AppointmentReschedule(appointment_date=future_monday.isoformat(), appointment_time='11:00'),
        )


async def test_confirm_then_complete(session, user, service, future_monday) -> None:
    appointment = await create_appointment(session, user.id, booking(service, future_monday, '10:00'))

    assert (await confirm_appointment(session, appointment.id)).status == AppointmentStatus.CONFIRMED
    assert (await complete_appointment(session, appointment.id)).status == AppointmentStatus.COMPLETED


async def test_get_missing_appointment(session) -> None:
    with pytest.raises(NotFound):
        await get_appointment(session, 12345)


async def test_list_appointments_filters_and_paginates(session, user, future_monday, make_appointment) -> None:
    for hour in (9, 10, 11, 12):
        await make_appointment(datetime.combine(future_monday, time(hour, 0)))
    await make_appointment(datetime.combine(future_monday, time(15, 0)), status=AppointmentStatus.CANCELED)

    page, total = await list_appointments(session, user_id=user.id, page=2, limit=2)
    assert total == 5
    assert [a.start_at.hour for a in page] == [11, 12]

    canceled, total = await list_appointments(session, status=AppointmentStatus.CANCELED)
    assert total == 1
    assert canceled[0].start_at.hour == 15

    _, total = await list_appointments(session, start_date=future_monday, end_date=future_monday)
    assert total == 5


async def test_notification_failure_keeps_booking(session, user, service, future_monday, monkeypatch) -> None:
    async def broken(*args, **kwargs):
        raise RuntimeError('notification store unavailable')

    monkeypatch.setattr(appointment_service, 'queue_appointment_notification', broken)

    appointment = await create_appointment(session, user.id, booking(service, future_monday, '10:00'))

    assert appointment.status == AppointmentStatus.SCHEDULED
    stored = await session.get(Appointment, appointment.id)
    assert stored is not None
    assert await notifications_for(session, appointment.id) == []


async def test_concurrent_bookings_for_same_slot_admit_exactly_one(db, user, service, future_monday) -> None:
    guard = BookingGuard()
    calendar = BusinessCalendar()

    async def attempt():
        async with async_session_maker() as s:
            return await create_appointment(
                s, user.id, booking(service, future_monday, '10:00'), calendar=calendar, guard=guard
            )

    results = await asyncio.gather(*(attempt() for _ in range(8)), return_exceptions=True)

    admitted = [r for r in results if isinstance(r, Appointment)]
    assert len(admitted) == 1
    assert all(isinstance(r, Conflict) for r in results if not isinstance(r, Appointment))

    async with async_session_maker() as s:
        _, total = await list_appointments(s, status=list(AppointmentStatus))
    assert total == 1
    assert guard._locks == {}


async def test_guard_keeps_lock_while_someone_waits(session) -> None:
    guard = BookingGuard()
    day = datetime(2030, 1, 7).date()
    entered = asyncio.Event()
    release = asyncio.Event()

    async def holder():
        async with guard.hold(session, day):
            entered.set()
            await release.wait()

    task = asyncio.create_task(holder())
    await entered.wait()
    waiter = asyncio.create_task(_hold_briefly(guard, session, day))
    await asyncio.sleep(0)
    assert day in guard._locks

    release.set()
    await asyncio.gather(task, waiter)
    assert guard._locks == {}


async def _hold_briefly(guard: BookingGuard, session, day) -> None:
    async with guard.hold(session, day):
        pass
