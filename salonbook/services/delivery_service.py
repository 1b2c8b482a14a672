"""Delivery orchestration: preferred channel first, retries with backoff, then fallback."""
import asyncio
import logging
from collections.abc import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from salonbook.core.config import settings
from salonbook.core.db import async_session_maker
from salonbook.core.errors import InvalidInput, NotFound
from salonbook.models.notification import (
    CustomNotificationRequest,
    Notification,
    NotificationCategory,
    NotificationChannel,
    NotificationCreate,
    NotificationStatus,
)
from salonbook.models.user import User
from salonbook.services.channels import ChannelStrategy, default_strategies, destination_for
from salonbook.services.dates import local_now
from salonbook.services.notification_service import (
    claim_notification,
    create_notification,
    mark_as_failed,
    mark_as_sent,
)

logger = logging.getLogger(__name__)


class DeliveryOrchestrator:
    def __init__(
        self,
        strategies: dict[NotificationChannel, ChannelStrategy] | None = None,
        priority: list[NotificationChannel] | None = None,
        max_attempts: int | None = None,
        backoff_base: float | None = None,
        transport_timeout: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.strategies = strategies if strategies is not None else default_strategies()
        self.priority = priority or [NotificationChannel(c) for c in settings.channel_priority_list]
        self.max_attempts = max_attempts or settings.delivery_max_attempts
        self.backoff_base = settings.delivery_backoff_base_seconds if backoff_base is None else backoff_base
        self.transport_timeout = transport_timeout or settings.transport_timeout_seconds
        self._sleep = sleep

    def channel_order(self, preferred: NotificationChannel) -> list[NotificationChannel]:
        """Preferred channel, then the fixed priority order, without duplicates."""
        order = dict.fromkeys([preferred, *self.priority])
        return [c for c in order if c in self.strategies]

    async def send_with_retry(
        self, strategy: ChannelStrategy, destination: str, subject: str, body: str
    ) -> bool:
        channel = strategy.channel_id().value
        for attempt in range(1, self.max_attempts + 1):
            try:
                ok = await asyncio.wait_for(
                    strategy.send(destination, subject, body), timeout=self.transport_timeout
                )
                if ok:
                    return True
                logger.warning("%s delivery to %s failed (attempt %d)", channel, destination, attempt)
            except asyncio.TimeoutError:
                logger.warning(
                    "%s delivery to %s timed out after %ss (attempt %d)",
                    channel,
                    destination,
                    self.transport_timeout,
                    attempt,
                )
            except Exception as e:
                logger.error("Error sending via %s (attempt %d): %s", channel, attempt, e)
            if attempt < self.max_attempts:
                await self._sleep(self.backoff_base ** attempt)
        return False

    async def deliver(
        self, session: AsyncSession, notification: Notification, user: User | None = None
    ) -> bool:
        """Deliver a PENDING notification and record the outcome on it.

        Anything other than PENDING is left alone and its stored outcome returned.
        """
        if notification.status != NotificationStatus.PENDING:
            logger.info(
                "Notification #%s already processed (status: %s)", notification.id, notification.status.value
            )
            return notification.status == NotificationStatus.SENT
        if not await claim_notification(session, notification.id):
            logger.info("Notification #%s is already being delivered", notification.id)
            return False

        try:
            if user is None:
                user = await session.get(User, notification.user_id)
            if user is None:
                raise NotFound(f"User for notification #{notification.id} not found")

            for channel in self.channel_order(notification.channel):
                strategy = self.strategies[channel]
                destination = destination_for(channel, user)
                if not destination or not strategy.validate_destination(destination):
                    logger.warning("Invalid destination for %s: %r", channel.value, destination)
                    continue
                if await self.send_with_retry(strategy, destination, notification.title, notification.content):
                    await mark_as_sent(session, notification, channel)
                    logger.info("Notification #%s sent via %s", notification.id, channel.value)
                    return True
        except Exception as e:
            logger.exception("Error processing notification #%s: %s", notification.id, e)
            await session.rollback()
            notification = await session.get(Notification, notification.id)
            if notification is None:
                return False

        await mark_as_failed(session, notification)
        logger.warning("Notification #%s failed on every channel", notification.id)
        return False


default_orchestrator = DeliveryOrchestrator()


async def deliver_notification_by_id(
    notification_id: int,
    orchestrator: DeliveryOrchestrator | None = None,
    session_maker: async_sessionmaker = async_session_maker,
) -> bool:
    """Deliver one notification in its own session (background tasks, sweep)."""
    orchestrator = orchestrator or default_orchestrator
    async with session_maker() as session:
        notification = await session.get(Notification, notification_id)
        if notification is None:
            logger.warning("Notification #%s not found", notification_id)
            return False
        return await orchestrator.deliver(session, notification)


async def deliver_pending_for_appointment(
    appointment_id: int,
    orchestrator: DeliveryOrchestrator | None = None,
    session_maker: async_sessionmaker = async_session_maker,
) -> int:
    """Deliver the appointment's notifications that are already due. Returns how many were sent."""
    async with session_maker() as session:
        result = await session.execute(
            select(Notification.id).where(
                Notification.appointment_id == appointment_id,
                Notification.status == NotificationStatus.PENDING,
                Notification.scheduled_for <= local_now(),
            )
        )
        ids = list(result.scalars().all())
    sent = 0
    for notification_id in ids:
        if await deliver_notification_by_id(notification_id, orchestrator, session_maker):
            sent += 1
    return sent


async def send_custom_notification(
    session: AsyncSession,
    data: CustomNotificationRequest,
    orchestrator: DeliveryOrchestrator | None = None,
) -> Notification:
    """Create a CUSTOM notification and deliver it right away."""
    user = await session.get(User, data.user_id)
    if user is None:
        raise InvalidInput(f"User #{data.user_id} not found")
    notification = await create_notification(
        session,
        NotificationCreate(
            user_id=user.id,
            category=NotificationCategory.CUSTOM,
            channel=data.channel,
            title=data.title,
            content=data.content,
        ),
    )
    await session.commit()
    await (orchestrator or default_orchestrator).deliver(session, notification, user)
    return notification
