import logging
from datetime import datetime, timedelta

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from salonbook.core.config import settings
from salonbook.core.errors import InvalidInput, NotFound
from salonbook.models.appointment import Appointment
from salonbook.models.notification import (
    Notification,
    NotificationCategory,
    NotificationChannel,
    NotificationCreate,
    NotificationPreference,
    NotificationPreferenceUpdate,
    NotificationStatus,
)
from salonbook.models.service import Service
from salonbook.models.user import User
from salonbook.services.dates import format_hhmm, local_now, utc_naive_now

logger = logging.getLogger(__name__)


async def create_notification(session: AsyncSession, data: NotificationCreate) -> Notification:
    notification = Notification(
        user_id=data.user_id,
        category=data.category,
        channel=data.channel,
        title=data.title,
        content=data.content,
        scheduled_for=data.scheduled_for or local_now(),
        appointment_id=data.appointment_id,
    )
    session.add(notification)
    await session.flush()
    await session.refresh(notification)
    return notification


async def list_notifications_for_user(session: AsyncSession, user_id: int) -> list[Notification]:
    result = await session.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    return list(result.scalars().all())


async def delete_notification(session: AsyncSession, notification_id: int, user_id: int | None = None) -> None:
    notification = await session.get(Notification, notification_id)
    if notification is None or (user_id is not None and notification.user_id != user_id):
        raise NotFound(f"Notification #{notification_id} not found")
    await session.delete(notification)
    await session.flush()


async def mark_as_sent(
    session: AsyncSession, notification: Notification, channel: NotificationChannel
) -> Notification:
    notification.status = NotificationStatus.SENT
    notification.delivered_channel = channel
    notification.sent_at = utc_naive_now()
    session.add(notification)
    await session.commit()
    return notification


async def mark_as_failed(session: AsyncSession, notification: Notification) -> Notification:
    notification.status = NotificationStatus.FAILED
    session.add(notification)
    await session.commit()
    return notification


async def claim_notification(
    session: AsyncSession, notification_id: int, now: datetime | None = None
) -> bool:
    """Atomically take a PENDING notification for delivery.

    Only one caller gets True per claim; a claim older than the configured TTL
    is considered abandoned and can be taken again.
    """
    now = now or utc_naive_now()
    stale_before = now - timedelta(seconds=settings.delivery_claim_ttl_seconds)
    result = await session.execute(
        update(Notification)
        .where(
            Notification.id == notification_id,
            Notification.status == NotificationStatus.PENDING,
            or_(Notification.claimed_at.is_(None), Notification.claimed_at < stale_before),
        )
        .values(claimed_at=now)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return result.rowcount == 1


async def discard_pending_reminders(session: AsyncSession, appointment_id: int) -> None:
    """Fail the appointment's queued reminders. Does not commit."""
    await session.execute(
        update(Notification)
        .where(
            Notification.appointment_id == appointment_id,
            Notification.category == NotificationCategory.APPOINTMENT_REMINDER,
            Notification.status == NotificationStatus.PENDING,
        )
        .values(status=NotificationStatus.FAILED)
        .execution_options(synchronize_session=False)
    )


# --- Preferences ---

async def get_notification_preference(session: AsyncSession, user_id: int) -> NotificationPreference:
    """Return the user's preferences, creating the defaults on first access."""
    result = await session.execute(
        select(NotificationPreference).where(NotificationPreference.user_id == user_id)
    )
    preference = result.scalar_one_or_none()
    if preference is None:
        preference = NotificationPreference(
            user_id=user_id,
            enable_email=True,
            enable_sms=False,
            enable_whatsapp=False,
            appointment_reminders=True,
            reminder_hours=settings.default_reminder_hours,
        )
        session.add(preference)
        await session.flush()
        await session.refresh(preference)
    return preference


async def update_notification_preference(
    session: AsyncSession, user_id: int, data: NotificationPreferenceUpdate
) -> NotificationPreference:
    preference = await get_notification_preference(session, user_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    hours = changes.get("reminder_hours")
    if hours is not None and not 1 <= hours <= 72:
        raise InvalidInput("reminder_hours must be between 1 and 72")
    for key, value in changes.items():
        setattr(preference, key, value)
    session.add(preference)
    await session.flush()
    return preference


def preferred_channel(preference: NotificationPreference) -> NotificationChannel:
    if preference.enable_email:
        return NotificationChannel.EMAIL
    if preference.enable_sms:
        return NotificationChannel.SMS
    if preference.enable_whatsapp:
        return NotificationChannel.WHATSAPP
    return NotificationChannel.EMAIL


# --- Appointment event messages ---

def _greeting(user: User) -> str:
    return f"Hello {user.full_name or 'there'},"


def _signature() -> str:
    return f"Best regards,\n{settings.site_name}"


def build_appointment_message(
    category: NotificationCategory, user: User, service: Service, start: datetime
) -> tuple[str, str]:
    """Title and plain-text body for an appointment event."""
    day = start.strftime("%Y-%m-%d")
    at = format_hhmm(start)
    details = (
        f"Service: {service.name}\n"
        f"Date: {day}\n"
        f"Time: {at}\n"
        f"Estimated duration: {service.duration_minutes} minutes\n"
        f"Price: {service.price:.2f}"
    )
    if category == NotificationCategory.APPOINTMENT_CONFIRMATION:
        title = f"Appointment Confirmed: {service.name}"
        lead = "Your appointment has been confirmed."
        tail = "You will receive a reminder before your appointment."
    elif category == NotificationCategory.APPOINTMENT_RESCHEDULED:
        title = f"Appointment Rescheduled: {service.name}"
        lead = "Your appointment has been moved to a new date."
        tail = "You will receive a reminder before your appointment."
    elif category == NotificationCategory.APPOINTMENT_CANCELLATION:
        title = f"Appointment Canceled: {service.name}"
        lead = "Your appointment has been canceled."
        tail = "If you did not request this cancellation, please contact us as soon as possible."
    elif category == NotificationCategory.APPOINTMENT_REMINDER:
        title = f"Reminder: your appointment on {day} at {at}"
        lead = f"This is a reminder of your upcoming appointment for {service.name}."
        tail = "Please let us know if you can no longer make it."
    else:
        raise ValueError(f"Not an appointment event: {category}")
    body = f"{_greeting(user)}\n\n{lead}\n\n{details}\n\n{tail}\n\n{_signature()}"
    return title, body


async def queue_appointment_notification(
    session: AsyncSession,
    appointment: Appointment,
    category: NotificationCategory,
    scheduled_for: datetime | None = None,
) -> Notification:
    """Create a PENDING notification for an appointment event (due now unless given)."""
    user = await session.get(User, appointment.user_id)
    service = await session.get(Service, appointment.service_id)
    if user is None or service is None:
        raise NotFound(f"User or service for appointment #{appointment.id} not found")
    preference = await get_notification_preference(session, user.id)
    title, content = build_appointment_message(category, user, service, appointment.start_at)
    notification = await create_notification(
        session,
        NotificationCreate(
            user_id=user.id,
            category=category,
            channel=preferred_channel(preference),
            title=title,
            content=content,
            scheduled_for=scheduled_for,
            appointment_id=appointment.id,
        ),
    )
    logger.debug(
        "Queued %s notification #%s for appointment #%s",
        category.value,
        notification.id,
        appointment.id,
    )
    return notification


async def find_pending_notifications(
    session: AsyncSession, due_before: datetime, limit: int
) -> list[Notification]:
    result = await session.execute(
        select(Notification)
        .where(
            Notification.status == NotificationStatus.PENDING,
            Notification.scheduled_for <= due_before,
        )
        .order_by(Notification.scheduled_for, Notification.id)
        .limit(limit)
    )
    return list(result.scalars().all())
