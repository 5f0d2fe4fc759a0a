"""
Redis caching and pub/sub for the waitlist API.

CACHING STRATEGY
================

What we cache:
  - GET /waitlist/status responses (capacity + waitlist count per event)
  - Cache key pattern: "waitlist:status:{event_type}:{event_id}"

Why:
  - The status endpoint is public and polled by every event page
  - It needs two aggregate queries per call; Redis answers in ~1ms

Invalidation strategy:
  - Every mutating waitlist operation deletes the key of the event it touched
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

Redis is advisory only. When it is disabled or unreachable every call
degrades to a no-op and the database answers.

Pub/sub:
  - New notifications are published on "{NOTIFICATIONS_CHANNEL_PREFIX}:{user_id}"
    so socket gateways can push them without polling
"""

import json
from typing import Any, Optional

import redis.asyncio as redis
from waitlist_api.core.config import get_settings
from waitlist_api.core.logging import get_logger
from waitlist_api.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_status_key(event_type: str, event_id: int) -> str:
    return f"waitlist:status:{event_type}:{event_id}"


async def get_cached_status(event_type: str, event_id: int) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_status_key(event_type, event_id)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=bool(data))
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_status(event_type: str, event_id: int, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_status_key(event_type, event_id)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_waitlist_status(event_type: str, event_id: int) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_status_key(event_type, event_id)
    try:
        await client.delete(key)
        logger.debug("cache_invalidated", key=key)
    except Exception as e:
        logger.error("cache_invalidation_error", key=key, error=str(e))


async def publish_notification(user_id: int, payload: dict[str, Any]) -> None:
    client = await get_redis()
    if not client:
        return

    channel = f"{settings.NOTIFICATIONS_CHANNEL_PREFIX}:{user_id}"
    try:
        await client.publish(channel, json.dumps(payload, default=str))
    except Exception as e:
        logger.error("notification_publish_error", channel=channel, error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
