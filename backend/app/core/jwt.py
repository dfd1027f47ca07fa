"""
Bearer token issuing and verification.

Tokens carry ``sub`` (username), ``user_id`` and ``role``. The role claim is
only a hint: request authentication re-reads the stored user and the stored
role wins.
"""

from datetime import timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from backend.app.core.config import settings
from backend.app.utils.time import utcnow


def user_claims(user) -> Dict[str, Any]:
    return {
        "sub": user.username,
        "user_id": user.id,
        "role": user.role.value,
    }


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Sign ``data`` with an ``exp`` claim (default lifetime from settings)."""
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {**data, "exp": utcnow() + lifetime}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def create_user_token(user, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token(user_claims(user), expires_delta)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the claims of a valid, unexpired token, or None."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
