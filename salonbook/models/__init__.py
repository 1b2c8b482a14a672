from salonbook.models.user import User
from salonbook.models.service import Service
from salonbook.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentReschedule,
    AppointmentStatus,
)
from salonbook.models.calendar import BusinessHours, SpecialBusinessDay, TimeBlock
from salonbook.models.notification import (
    Notification,
    NotificationCategory,
    NotificationChannel,
    NotificationPreference,
    NotificationStatus,
)

__all__ = [
    "User",
    "Service",
    "Appointment",
    "AppointmentCreate",
    "AppointmentPublic",
    "AppointmentReschedule",
    "AppointmentStatus",
    "BusinessHours",
    "SpecialBusinessDay",
    "TimeBlock",
    "Notification",
    "NotificationCategory",
    "NotificationChannel",
    "NotificationPreference",
    "NotificationStatus",
]
