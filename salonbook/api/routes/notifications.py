from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from salonbook.api.deps import get_admin_user, get_current_user, get_orchestrator, get_session
from salonbook.models.notification import (
    CustomNotificationRequest,
    Notification,
    NotificationPreference,
    NotificationPreferencePublic,
    NotificationPreferenceUpdate,
    NotificationPublic,
)
from salonbook.models.user import User
from salonbook.services.delivery_service import DeliveryOrchestrator, send_custom_notification
from salonbook.services.notification_service import (
    delete_notification,
    get_notification_preference,
    list_notifications_for_user,
    update_notification_preference,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _to_public(n: Notification) -> NotificationPublic:
    return NotificationPublic.model_validate(n, from_attributes=True)


def _preference_public(p: NotificationPreference) -> NotificationPreferencePublic:
    return NotificationPreferencePublic.model_validate(p, from_attributes=True)


@router.get("", response_model=list[NotificationPublic])
async def list_my_notifications(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> list[NotificationPublic]:
    return [_to_public(n) for n in await list_notifications_for_user(session, current_user.id)]


@router.get("/preferences", response_model=NotificationPreferencePublic)
async def get_my_preferences(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> NotificationPreferencePublic:
    return _preference_public(await get_notification_preference(session, current_user.id))


@router.put("/preferences", response_model=NotificationPreferencePublic)
async def put_my_preferences(
    body: NotificationPreferenceUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> NotificationPreferencePublic:
    return _preference_public(await update_notification_preference(session, current_user.id, body))


@router.post("/custom", response_model=NotificationPublic, status_code=status.HTTP_201_CREATED)
async def post_custom_notification(
    body: CustomNotificationRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_admin_user),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
) -> NotificationPublic:
    """Create a custom message for a user and deliver it right away."""
    notification = await send_custom_notification(session, body, orchestrator)
    return _to_public(notification)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_notification(
    notification_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> None:
    await delete_notification(session, notification_id, user_id=current_user.id)
