"""Redis pub/sub — event broadcasting between services and WebSockets.

Learn: Redis pub/sub is fire-and-forget. If no one is listening, the message
is lost. That's fine for real-time UI updates (the frontend can always query
the API to catch up). Events are also stored in the events table for durability.

Channel naming: trellone:boards:{board_id}
Each board's WebSocket only subscribes to its own channel.
"""

import json
from typing import Any, Optional

import redis.asyncio as aioredis
import structlog

from trellone.config import settings

logger = structlog.get_logger()

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


def board_channel(board_id: str) -> str:
    return f"trellone:boards:{board_id}"


async def init_redis() -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    _redis = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Verify connection
    await _redis.ping()
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


def redis_available() -> bool:
    return _redis is not None


async def publish_event(
    board_id: str,
    event_type: str,
    data: dict[str, Any],
) -> None:
    """Publish an event to a board's Redis channel.

    Learn: Board services publish here after their database commit.
    Without Redis (tests, degraded mode) this is a no-op.
    """
    if _redis is None:
        return
    payload = json.dumps({"type": event_type, **data}, default=str)
    try:
        await _redis.publish(board_channel(board_id), payload)
    except aioredis.RedisError as e:
        logger.warning("realtime.publish_failed", board_id=board_id, error=str(e))
