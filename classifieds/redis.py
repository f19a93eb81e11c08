from collections.abc import AsyncGenerator

import redis.asyncio as aioredis

from classifieds.config import settings

# Shared by nonce tracking and request rate limiting. Neither stores anything
# that must survive a Redis restart.
redis_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url,
    decode_responses=True,
    socket_timeout=settings.redis_socket_timeout_seconds,
    health_check_interval=30,
)


async def get_redis() -> AsyncGenerator[aioredis.Redis, None]:
    client = aioredis.Redis(connection_pool=redis_pool)
    try:
        yield client
    finally:
        await client.aclose()
