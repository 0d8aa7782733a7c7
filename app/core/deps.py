"""FastAPI dependencies: identity, role guards and service construction."""

from datetime import datetime
from typing import Callable
from uuid import UUID

from fastapi import BackgroundTasks, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.user import User, UserRole
from app.services.auth import decode_access_token
from app.services.availability_service import AvailabilityService
from app.services.booking_service import BookingService
from app.services.email_service import EmailService, email_service
from app.utils.time_utils import utc_now

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Extract and validate JWT token, return current user."""

    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id_str: str | None = payload.get("sub")
    if user_id_str is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload"
        )

    try:
        user_id = UUID(user_id_str)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID in token"
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user"
        )

    return user


def require_role(*roles: UserRole):
    """Dependency factory that checks if user has one of the required roles.

    Usage:
        @router.post("/")
        async def provider_route(user: User = Depends(require_provider)):
            ...
    """
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join(r.value for r in roles)}"
            )
        return current_user

    return role_checker


require_provider = require_role(UserRole.PROVIDER, UserRole.ADMIN)


def get_clock() -> Callable[[], datetime]:
    """Clock used for past-time checks; overridden in tests."""
    return utc_now


def get_email_service() -> EmailService:
    return email_service


def get_availability_service(
    db: AsyncSession = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> AvailabilityService:
    return AvailabilityService(db, clock)


def get_booking_service(
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
    notifier: EmailService = Depends(get_email_service),
) -> BookingService:
    return BookingService(db, clock=clock, notifier=notifier, background_tasks=background_tasks)
