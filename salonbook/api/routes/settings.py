from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from salonbook.api.deps import get_admin_user, get_calendar, get_session
from salonbook.models.calendar import (
    BusinessHours,
    BusinessHoursUpdate,
    SpecialBusinessDay,
    SpecialBusinessDayCreate,
)
from salonbook.models.user import User
from salonbook.services.calendar_service import (
    BusinessCalendar,
    add_special_day,
    initialize_default_hours,
    list_business_hours,
    list_special_days,
    remove_special_day,
    update_business_hours,
)

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/business-hours", response_model=list[BusinessHours])
async def get_business_hours(
    session: AsyncSession = Depends(get_session),
) -> list[BusinessHours]:
    return await list_business_hours(session)


@router.post("/business-hours/initialize", response_model=list[BusinessHours])
async def initialize_business_hours(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_admin_user),
    calendar: BusinessCalendar = Depends(get_calendar),
) -> list[BusinessHours]:
    """Create the default weekly hours if none exist yet."""
    await initialize_default_hours(session, calendar)
    return await list_business_hours(session)


@router.put("/business-hours", response_model=BusinessHours)
async def put_business_hours(
    body: BusinessHoursUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_admin_user),
    calendar: BusinessCalendar = Depends(get_calendar),
) -> BusinessHours:
    return await update_business_hours(session, calendar, body)


@router.get("/special-days", response_model=list[SpecialBusinessDay])
async def get_special_days(
    session: AsyncSession = Depends(get_session),
) -> list[SpecialBusinessDay]:
    return await list_special_days(session)


@router.post("/special-days", response_model=SpecialBusinessDay, status_code=status.HTTP_201_CREATED)
async def post_special_day(
    body: SpecialBusinessDayCreate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_admin_user),
    calendar: BusinessCalendar = Depends(get_calendar),
) -> SpecialBusinessDay:
    return await add_special_day(session, calendar, body)


@router.delete("/special-days/{special_day_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_special_day(
    special_day_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_admin_user),
    calendar: BusinessCalendar = Depends(get_calendar),
) -> None:
    await remove_special_day(session, calendar, special_day_id)
