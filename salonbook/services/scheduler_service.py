"""Periodic jobs: sweep due notifications and derive appointment reminders."""
import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from salonbook.core.config import settings
from salonbook.core.db import async_session_maker
from salonbook.models.appointment import ACTIVE_STATUSES, Appointment
from salonbook.models.notification import Notification, NotificationCategory, NotificationStatus
from salonbook.services.dates import local_now
from salonbook.services.delivery_service import DeliveryOrchestrator, deliver_notification_by_id
from salonbook.services.notification_service import (
    find_pending_notifications,
    get_notification_preference,
    queue_appointment_notification,
)

logger = logging.getLogger(__name__)


async def sweep_pending_notifications(
    orchestrator: DeliveryOrchestrator | None = None,
    session_maker: async_sessionmaker = async_session_maker,
    now: datetime | None = None,
    batch_size: int | None = None,
) -> int:
    """Deliver up to one batch of due PENDING notifications. Returns how many were sent."""
    now = now or local_now()
    async with session_maker() as session:
        due = await find_pending_notifications(
            session, now, batch_size or settings.pending_sweep_batch_size
        )
        ids = [n.id for n in due]
    logger.debug("Found %d pending notification(s)", len(ids))

    sent = 0
    for notification_id in ids:
        try:
            if await deliver_notification_by_id(notification_id, orchestrator, session_maker):
                sent += 1
        except Exception as e:
            logger.exception("Sweep failed on notification #%s: %s", notification_id, e)
    if ids:
        logger.info("Pending sweep: %d processed, %d sent", len(ids), sent)
    return sent


async def _has_pending_reminder(session: AsyncSession, appointment_id: int) -> bool:
    result = await session.execute(
        select(Notification.id)
        .where(
            Notification.appointment_id == appointment_id,
            Notification.category == NotificationCategory.APPOINTMENT_REMINDER,
            Notification.status == NotificationStatus.PENDING,
        )
        .limit(1)
    )
    return result.first() is not None


async def schedule_appointment_reminders(
    session: AsyncSession,
    now: datetime | None = None,
    lookahead_days: int | None = None,
) -> list[Notification]:
    """Create one PENDING reminder per upcoming appointment, at start minus the user's lead time.

    Appointments whose reminder time has passed, or that already have a pending
    reminder, are skipped, so running this repeatedly is safe.
    """
    now = now or local_now()
    horizon = now + timedelta(days=lookahead_days or settings.reminder_lookahead_days)
    result = await session.execute(
        select(Appointment.id)
        .where(
            Appointment.start_at >= now,
            Appointment.start_at <= horizon,
            Appointment.status.in_(ACTIVE_STATUSES),
        )
        .order_by(Appointment.start_at)
    )
    appointment_ids = list(result.scalars().all())
    logger.debug("Found %d upcoming appointment(s)", len(appointment_ids))

    created: list[Notification] = []
    for appointment_id in appointment_ids:
        try:
            appointment = await session.get(Appointment, appointment_id)
            preference = await get_notification_preference(session, appointment.user_id)
            if not preference.appointment_reminders:
                continue
            remind_at = appointment.start_at - timedelta(hours=preference.reminder_hours)
            if remind_at < now:
                continue
            if await _has_pending_reminder(session, appointment.id):
                continue
            notification = await queue_appointment_notification(
                session,
                appointment,
                NotificationCategory.APPOINTMENT_REMINDER,
                scheduled_for=remind_at,
            )
            await session.commit()
            created.append(notification)
            logger.debug(
                "Reminder scheduled for appointment #%s at %s", appointment.id, remind_at.isoformat()
            )
        except Exception as e:
            logger.exception("Failed to schedule reminder for appointment #%s: %s", appointment_id, e)
            await session.rollback()
    return created


async def run_pending_sweep() -> None:
    await sweep_pending_notifications()


async def run_reminder_scheduling() -> None:
    async with async_session_maker() as session:
        created = await schedule_appointment_reminders(session)
        await session.commit()
    logger.info("Reminder scheduling: %d reminder(s) created", len(created))
