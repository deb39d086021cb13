"""
Redis client initialization.

Redis holds the token blacklist; the health endpoint reports its reachability.
"""

import redis.asyncio as redis
from courier.app.core.config import settings


# Create async Redis client
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def ping_redis() -> bool:
    """True when Redis answers a ping."""
    try:
        return bool(await redis_client.ping())
    except Exception:
        return False
