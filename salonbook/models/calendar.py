import datetime as dt

from sqlmodel import Field, SQLModel


class BusinessHours(SQLModel, table=True):
    """Weekly default opening hours; day_of_week 0=Sunday .. 6=Saturday."""

    __tablename__ = "business_hours"
    id: int | None = Field(default=None, primary_key=True)
    day_of_week: int = Field(unique=True, index=True, ge=0, le=6)
    is_open: bool = True
    open_time: str = "08:00"
    close_time: str = "18:00"


class SpecialBusinessDay(SQLModel, table=True):
    """Date-specific override of the weekly hours (holiday, extended day)."""

    __tablename__ = "special_business_days"
    id: int | None = Field(default=None, primary_key=True)
    date: dt.date = Field(unique=True, index=True)
    is_open: bool = False
    open_time: str | None = None
    close_time: str | None = None
    reason: str | None = None


class TimeBlock(SQLModel, table=True):
    """Admin blackout window; nothing can be booked inside it."""

    __tablename__ = "time_blocks"
    id: int | None = Field(default=None, primary_key=True)
    date: dt.date = Field(index=True)
    start_at: dt.datetime = Field(index=True)
    end_at: dt.datetime
    reason: str | None = None


class BusinessHoursUpdate(SQLModel):
    day_of_week: int = Field(ge=0, le=6)
    is_open: bool
    open_time: str | None = None
    close_time: str | None = None


class SpecialBusinessDayCreate(SQLModel):
    date: str  # YYYY-MM-DD
    is_open: bool
    open_time: str | None = None
    close_time: str | None = None
    reason: str | None = None


class TimeBlockCreate(SQLModel):
    date: str  # YYYY-MM-DD
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    reason: str | None = None
