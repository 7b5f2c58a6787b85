"""JWT bearer authentication and the current-user dependencies."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from zynk.config import get_settings
from zynk.constants import BEARER_PREFIX
from zynk.db.session import get_db
from zynk.errors import ForbiddenError, UnauthorizedError
from zynk.models.user import User
from zynk.schemas.auth import Identity


def create_jwt(user_id: int, role: str) -> str:
    """Create a signed JWT for the given user."""
    settings = get_settings()
    payload = {
        "sub": str(user_id),
        "role": role,
        "exp": datetime.now(UTC) + timedelta(days=settings.jwt_expire_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _decode_jwt(token: str) -> dict:
    settings = get_settings()
    return jwt.decode(
        token, settings.jwt_secret, algorithms=[settings.jwt_algorithm],
        options={"require": ["exp", "sub"]},
    )


def extract_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) == 2 and parts[0] == BEARER_PREFIX:
        return parts[1]
    return None


def authenticate(token: str) -> Identity:
    """Verify a bearer token and return who it identifies."""
    try:
        payload = _decode_jwt(token)
        return Identity(user_id=int(payload["sub"]), role=payload["role"])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired")
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise UnauthorizedError("Invalid token")


async def get_current_user(
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """FastAPI dependency: decode the bearer token and return the User, or raise 401."""
    token = extract_token(authorization)
    if not token:
        raise UnauthorizedError("Authorization token required")
    identity = authenticate(token)

    result = await db.execute(
        select(User).where(User.id == identity.user_id, User.is_active == True)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise UnauthorizedError("User not found or deactivated")
    return user


def require_role(*roles: str) -> Callable:
    """Dependency factory: the current user, restricted to `roles`."""

    async def _dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise ForbiddenError(f"{' or '.join(r.capitalize() for r in roles)} access required")
        return user

    return _dependency
