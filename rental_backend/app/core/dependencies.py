"""
Authentication dependencies for FastAPI.

This module resolves the bearer token into the acting user and the
explicit ActorContext handed to the settlement orchestrator.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from rental_backend.app.core.jwt import decode_access_token
from rental_backend.app.core.redis_client import get_redis
from rental_backend.app.core.token_revocation import is_token_revoked, are_user_tokens_revoked
from rental_backend.app.db.session import get_db
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.models.enums import UserRole
from rental_backend.app.models.user import User

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Checks:
    1. Validates JWT token signature and expiry
    2. Checks if token has been explicitly revoked
    3. Checks if all user tokens have been revoked (user blocked)
    4. Verifies user is still active in database (real-time check)

    Returns:
        Decoded token payload, with `full_name` filled from the users table

    Raises:
        HTTPException: 401 if authentication fails for any reason
    """
    token = credentials.credentials

    # 1. Decode and validate JWT
    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 2. Check if this specific token has been revoked
    if await is_token_revoked(redis, token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 3. Check if all user tokens have been revoked (user was blocked)
    if await are_user_tokens_revoked(redis, user_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User access has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 4. Real-time database check: Verify user is still active
    user = await db.get(User, user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return {**payload, "full_name": user.full_name}


async def get_actor_context(current_user: dict = Depends(get_current_user)) -> ActorContext:
    """Build the ActorContext for the authenticated user."""
    try:
        role = UserRole(current_user.get("role"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid role in token"
        )

    return ActorContext(
        user_id=current_user["user_id"],
        username=current_user.get("sub"),
        role=role,
        full_name=current_user.get("full_name"),
    )
