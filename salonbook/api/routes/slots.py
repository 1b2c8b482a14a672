from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from salonbook.api.deps import get_calendar, get_session
from salonbook.api.schemas.appointment import AvailableSlotsResponse, SlotInfo
from salonbook.services.calendar_service import BusinessCalendar
from salonbook.services.slot_service import compute_available_slots

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=AvailableSlotsResponse)
async def available_slots(
    date_param: str = Query(..., alias="date", description="YYYY-MM-DD"),
    service_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    calendar: BusinessCalendar = Depends(get_calendar),
) -> AvailableSlotsResponse:
    """Bookable start times for the date (business-local), sized to the service when given."""
    day = await compute_available_slots(session, calendar, date_param, service_id=service_id)
    return AvailableSlotsResponse(
        date=day.date.isoformat(),
        is_open=day.is_open,
        business_hours=day.business_hours,
        slots=[
            SlotInfo(start=s.start, formatted_time=s.formatted_time, duration_minutes=s.duration_minutes)
            for s in day.slots
        ],
    )
