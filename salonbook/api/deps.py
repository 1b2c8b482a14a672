from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salonbook.core.config import settings
from salonbook.core.db import get_session
from salonbook.core.security import decode_access_token
from salonbook.models.user import User
from salonbook.services.booking_guard import BookingGuard, booking_guard
from salonbook.services.calendar_service import BusinessCalendar, business_calendar
from salonbook.services.delivery_service import DeliveryOrchestrator, default_orchestrator

security = HTTPBearer(auto_error=False)


def get_calendar() -> BusinessCalendar:
    return business_calendar


def get_guard() -> BookingGuard:
    return booking_guard


def get_orchestrator() -> DeliveryOrchestrator:
    return default_orchestrator


async def get_current_user(
    session: AsyncSession = Depends(get_session),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = decode_access_token(credentials.credentials)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        uid = int(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    result = await session.execute(select(User).where(User.id == uid))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    """Salon staff only: the caller's email must be in ADMIN_EMAILS."""
    if current_user.email.lower() not in settings.admin_emails_list:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to manage the salon schedule",
        )
    return current_user
