from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from salonbook.api.deps import get_admin_user, get_calendar, get_current_user, get_guard, get_session
from salonbook.api.schemas.appointment import AppointmentListResponse
from salonbook.core.errors import NotFound
from salonbook.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentReschedule,
    AppointmentStatus,
)
from salonbook.models.user import User
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
from salonbook.services.calendar_service import BusinessCalendar
from salonbook.services.delivery_service import deliver_pending_for_appointment

router = APIRouter(prefix="/appointments", tags=["appointments"])


def _to_public(a: Appointment) -> AppointmentPublic:
    return AppointmentPublic.model_validate(a, from_attributes=True)


async def _get_own(session: AsyncSession, appointment_id: int, user: User) -> Appointment:
    appointment = await get_appointment(session, appointment_id)
    if appointment.user_id != user.id:
        raise NotFound(f"Appointment #{appointment_id} not found")
    return appointment


def _deliver_later(background_tasks: BackgroundTasks, appointment: Appointment) -> None:
    # Delivery runs after the response, in its own session
    background_tasks.add_task(deliver_pending_for_appointment, appointment.id)


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: AppointmentCreate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    calendar: BusinessCalendar = Depends(get_calendar),
    guard: BookingGuard = Depends(get_guard),
) -> AppointmentPublic:
    appointment = await create_appointment(session, current_user.id, body, calendar=calendar, guard=guard)
    _deliver_later(background_tasks, appointment)
    return _to_public(appointment)


@router.get("", response_model=AppointmentListResponse)
async def list_my_appointments(
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentListResponse:
    items, total = await list_appointments(
        session,
        user_id=current_user.id,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return AppointmentListResponse(
        items=[_to_public(a) for a in items], total=total, page=page, limit=limit
    )


@router.get("/{appointment_id}", response_model=AppointmentPublic)
async def get_my_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentPublic:
    return _to_public(await _get_own(session, appointment_id, current_user))


@router.patch("/{appointment_id}/reschedule", response_model=AppointmentPublic)
async def reschedule_my_appointment(
    appointment_id: int,
    body: AppointmentReschedule,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    calendar: BusinessCalendar = Depends(get_calendar),
    guard: BookingGuard = Depends(get_guard),
) -> AppointmentPublic:
    await _get_own(session, appointment_id, current_user)
    appointment = await reschedule_appointment(
        session, appointment_id, body, calendar=calendar, guard=guard
    )
    _deliver_later(background_tasks, appointment)
    return _to_public(appointment)


@router.patch("/{appointment_id}/cancel", response_model=AppointmentPublic)
async def cancel_my_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentPublic:
    await _get_own(session, appointment_id, current_user)
    appointment = await cancel_appointment(session, appointment_id)
    _deliver_later(background_tasks, appointment)
    return _to_public(appointment)


@router.patch("/{appointment_id}/confirm", response_model=AppointmentPublic)
async def confirm(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_admin_user),
) -> AppointmentPublic:
    appointment = await confirm_appointment(session, appointment_id)
    _deliver_later(background_tasks, appointment)
    return _to_public(appointment)


@router.patch("/{appointment_id}/complete", response_model=AppointmentPublic)
async def complete(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_admin_user),
) -> AppointmentPublic:
    return _to_public(await complete_appointment(session, appointment_id))
