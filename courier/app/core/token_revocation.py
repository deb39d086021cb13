"""
Token Revocation using Redis.

Logging out from the settings screen blacklists the token until it would
have expired on its own.
"""

import logging
from courier.app.core import redis_client as redis_module

logger = logging.getLogger("courier.auth")

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"


async def revoke_token(token: str, user_id: int, ttl_seconds: int) -> bool:
    """
    Revoke a JWT by adding it to the blacklist.

    Args:
        token: The JWT token string to revoke
        user_id: Owner of the token, stored for audit purposes
        ttl_seconds: Remaining token lifetime

    Returns:
        True if revoked, False if Redis could not be reached
    """
    try:
        await redis_module.redis_client.set(
            f"{TOKEN_BLACKLIST_PREFIX}{token}", str(user_id), ex=ttl_seconds
        )
        return True
    except Exception as e:
        logger.error("Error revoking token for user %s: %s", user_id, e)
        return False


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.

    Fails open when Redis is unavailable.
    """
    try:
        exists = await redis_module.redis_client.exists(f"{TOKEN_BLACKLIST_PREFIX}{token}")
        return exists > 0
    except Exception as e:
        logger.warning("Error checking token revocation: %s", e)
        return False
