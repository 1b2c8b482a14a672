from datetime import UTC, datetime
from enum import Enum

from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class NotificationChannel(str, Enum):
    EMAIL = "EMAIL"
    SMS = "SMS"
    WHATSAPP = "WHATSAPP"


class NotificationCategory(str, Enum):
    APPOINTMENT_CONFIRMATION = "APPOINTMENT_CONFIRMATION"
    APPOINTMENT_REMINDER = "APPOINTMENT_REMINDER"
    APPOINTMENT_CANCELLATION = "APPOINTMENT_CANCELLATION"
    APPOINTMENT_RESCHEDULED = "APPOINTMENT_RESCHEDULED"
    PASSWORD_RESET = "PASSWORD_RESET"
    CUSTOM = "CUSTOM"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    category: NotificationCategory
    channel: NotificationChannel  # preferred channel
    delivered_channel: NotificationChannel | None = None
    title: str
    content: str
    scheduled_for: datetime = Field(index=True)  # business-local
    appointment_id: int | None = Field(default=None, foreign_key="appointments.id", index=True)
    status: NotificationStatus = Field(default=NotificationStatus.PENDING, index=True)
    sent_at: datetime | None = None
    claimed_at: datetime | None = None  # set while a worker is delivering it
    created_at: datetime = Field(default_factory=_utc_naive_now)


class NotificationCreate(SQLModel):
    user_id: int
    category: NotificationCategory
    channel: NotificationChannel
    title: str
    content: str
    scheduled_for: datetime | None = None
    appointment_id: int | None = None


class NotificationPublic(SQLModel):
    id: int
    user_id: int
    category: NotificationCategory
    channel: NotificationChannel
    delivered_channel: NotificationChannel | None = None
    title: str
    content: str
    scheduled_for: datetime
    appointment_id: int | None = None
    status: NotificationStatus
    sent_at: datetime | None = None


class NotificationPreference(SQLModel, table=True):
    __tablename__ = "notification_preferences"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)
    enable_email: bool = True
    enable_sms: bool = False
    enable_whatsapp: bool = False
    appointment_reminders: bool = True
    reminder_hours: int = Field(default=24, ge=1, le=72)


class NotificationPreferenceUpdate(SQLModel):
    enable_email: bool | None = None
    enable_sms: bool | None = None
    enable_whatsapp: bool | None = None
    appointment_reminders: bool | None = None
    reminder_hours: int | None = Field(default=None, ge=1, le=72)


class NotificationPreferencePublic(SQLModel):
    user_id: int
    enable_email: bool
    enable_sms: bool
    enable_whatsapp: bool
    appointment_reminders: bool
    reminder_hours: int


class CustomNotificationRequest(SQLModel):
    user_id: int
    title: str
    content: str
    channel: NotificationChannel = NotificationChannel.EMAIL
