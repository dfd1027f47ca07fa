"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.core.actor import Actor
from backend.app.core.jwt import decode_access_token
from backend.app.core.token_revocation import is_token_revoked, are_user_tokens_revoked
from backend.app.db.session import get_db
from backend.app.models.user import User

# HTTP Bearer security scheme
security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Actor:
    """
    FastAPI dependency for JWT authentication.

    Security checks:
    1. Validates JWT token signature and expiry
    2. Checks if token has been explicitly revoked (logout)
    3. Checks if all user tokens have been revoked (user blocked)
    4. Verifies user still exists and is active (real-time check)

    Returns:
        The authenticated Actor

    Raises:
        HTTPException: 401 if authentication fails, 403 if the account is inactive
    """
    token = credentials.credentials

    payload = decode_access_token(token)
    if payload is None:
        raise _unauthorized("Could not validate credentials")

    try:
        actor = Actor.from_token_payload(payload)
    except (KeyError, TypeError, ValueError):
        raise _unauthorized("Invalid token payload")

    if await is_token_revoked(token):
        raise _unauthorized("Token has been revoked")

    if await are_user_tokens_revoked(actor.user_id):
        raise _unauthorized("User access has been revoked")

    result = await db.execute(select(User).where(User.id == actor.user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise _unauthorized("User not found")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    # The stored role wins over a stale token claim
    if user.role != actor.role:
        actor = Actor(user_id=user.id, username=user.username, role=user.role)

    return actor
