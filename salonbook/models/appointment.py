from datetime import UTC, datetime
from enum import Enum

from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    RESCHEDULED = "RESCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


# Statuses that hold their interval on the calendar.
ACTIVE_STATUSES = frozenset(
    {AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED, AppointmentStatus.RESCHEDULED}
)

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.RESCHEDULED,
            AppointmentStatus.CANCELED,
            AppointmentStatus.COMPLETED,
        }
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.RESCHEDULED, AppointmentStatus.CANCELED, AppointmentStatus.COMPLETED}
    ),
    AppointmentStatus.RESCHEDULED: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.RESCHEDULED,
            AppointmentStatus.CANCELED,
            AppointmentStatus.COMPLETED,
        }
    ),
    AppointmentStatus.CANCELED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    service_id: int = Field(foreign_key="services.id", index=True)
    start_at: datetime = Field(index=True)
    # start_at + service duration at admission time; the exclusion constraint uses it
    end_at: datetime = Field(index=True)
    status: AppointmentStatus = Field(default=AppointmentStatus.SCHEDULED, index=True)
    notes: str | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now)
    updated_at: datetime = Field(default_factory=_utc_naive_now)


class AppointmentCreate(SQLModel):
    service_id: int
    appointment_date: str  # YYYY-MM-DD
    appointment_time: str  # HH:MM
    notes: str | None = None


class AppointmentReschedule(SQLModel):
    appointment_date: str
    appointment_time: str


class AppointmentPublic(SQLModel):
    id: int
    user_id: int
    service_id: int
    start_at: datetime
    end_at: datetime
    status: AppointmentStatus
    notes: str | None = None
    created_at: datetime
