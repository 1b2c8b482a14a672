from datetime import datetime

from pydantic import BaseModel

from salonbook.models.appointment import AppointmentPublic


class SlotInfo(BaseModel):
    start: datetime
    formatted_time: str  # HH:MM
    duration_minutes: int


class AvailableSlotsResponse(BaseModel):
    date: str  # YYYY-MM-DD
    is_open: bool
    business_hours: str | None = None
    slots: list[SlotInfo]


class AppointmentListResponse(BaseModel):
    items: list[AppointmentPublic]
    total: int
    page: int
    limit: int
