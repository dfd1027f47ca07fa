"""
Token Revocation System using Redis.

Implements token blacklisting to immediately invalidate JWT tokens
when users log out or are blocked by an admin.
"""

import logging
from backend.app.core.redis_client import get_redis_client
from backend.app.core.config import settings

logger = logging.getLogger("foodshare.auth")

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"
USER_TOKENS_PREFIX = "user:tokens:"


def _token_ttl_seconds() -> int:
    # Tokens expire on their own after this; the blacklist entry need not outlive them
    return settings.access_token_expire_minutes * 60


async def revoke_token(token: str, user_id: int) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        await get_redis_client().setex(key, _token_ttl_seconds(), str(user_id))
        return True
    except Exception as e:
        logger.warning("Error revoking token for user %s: %s", user_id, e)
        return False


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.

    Fails open: if Redis is unreachable the token is treated as valid.
    """
    try:
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        exists = await get_redis_client().exists(key)
        return exists > 0
    except Exception as e:
        logger.warning("Error checking token revocation: %s", e)
        return False


async def revoke_all_user_tokens(user_id: int) -> bool:
    """
    Revoke all active tokens for a user (called when the user is blocked).

    Sets a per-user flag that token validation checks, with a TTL equal to the
    maximum token lifetime.
    """
    try:
        key = f"{USER_TOKENS_PREFIX}{user_id}:revoked"
        await get_redis_client().setex(key, _token_ttl_seconds(), "1")
        return True
    except Exception as e:
        logger.warning("Error revoking all tokens for user %s: %s", user_id, e)
        return False


async def are_user_tokens_revoked(user_id: int) -> bool:
    """Check if all tokens for a user have been revoked."""
    try:
        key = f"{USER_TOKENS_PREFIX}{user_id}:revoked"
        exists = await get_redis_client().exists(key)
        return exists > 0
    except Exception as e:
        logger.warning("Error checking user token revocation for user %s: %s", user_id, e)
        return False


async def clear_user_token_revocation(user_id: int) -> bool:
    """
    Clear the global token revocation flag for a user.

    Called when a blocked user is unblocked.
    """
    try:
        key = f"{USER_TOKENS_PREFIX}{user_id}:revoked"
        await get_redis_client().delete(key)
        return True
    except Exception as e:
        logger.warning("Error clearing token revocation for user %s: %s", user_id, e)
        return False
