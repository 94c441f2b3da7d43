"""FastAPI authentication dependencies for route protection."""

import logging
import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.auth.jwt import decode_token
from hotel_booking.database import get_db
from hotel_booking.models.user import User

logger = logging.getLogger(__name__)

# Strict bearer: raises 403 automatically if no token provided
_bearer_scheme = HTTPBearer()


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to a user.

    Raises:
        HTTPException 401: If the token is invalid, expired, not an access
            token, or names an unknown or inactive user.
    """
    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise _unauthorized() from None

    if payload.get("type") != "access":
        raise _unauthorized("Invalid token type")

    try:
        user_id = uuid.UUID(payload.get("sub") or "")
    except ValueError:
        raise _unauthorized() from None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise _unauthorized()
    if not user.is_active:
        raise _unauthorized("User account is inactive")
    return user


async def get_current_active_user(
    user: User = Depends(get_current_user),
) -> User:
    """Return the current user only if their account is active.

    Raises:
        HTTPException 403: If the user account is inactive.
    """
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )
    return user


async def require_admin(
    user: User = Depends(get_current_active_user),
) -> User:
    """Allow only platform admins through.

    Raises:
        HTTPException 403: If the user is not an admin.
    """
    if not user.is_admin:
        logger.warning("User %s (role %s) denied admin-only access", user.id, user.role)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
