"""Redis-backed cache for room catalogue reads."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Optional

import redis
from redis.exceptions import ConnectionError, RedisError

from roombook.core.config import settings

logger = logging.getLogger(__name__)

ROOMS_KEY = "rooms:active"


def room_key(room_id: Any) -> str:
    return f"room:{room_id}"


class _InMemoryCache:
    """Fallback cache used when Redis is unavailable or not configured."""

    def __init__(self):
        self._cache: dict[str, tuple[float, str]] = {}

    def get(self, key: str) -> Optional[str]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at < time.monotonic():
            self._cache.pop(key, None)
            return None
        return value

    def setex(self, key: str, ttl: int, value: str) -> None:
        self._cache[key] = (time.monotonic() + ttl, value)

    def delete(self, *keys: str) -> None:
        for key in keys:
            self._cache.pop(key, None)

    def flushdb(self) -> None:
        self._cache.clear()


def _build_client(url: str) -> redis.Redis | _InMemoryCache:
    if not url:
        logger.info("REDIS_CACHE_URL not set, using in-memory cache")
        return _InMemoryCache()
    try:
        client = redis.Redis.from_url(url, max_connections=50, decode_responses=True)
        client.ping()
        logger.info(f"Redis cache connected: {url}")
        return client
    except (ConnectionError, RedisError) as e:
        logger.warning(f"Failed to connect to Redis cache: {e}. Using fallback in-memory cache.")
        return _InMemoryCache()


class RedisCache:
    """JSON cache with TTL support."""

    def __init__(self, url: str, default_ttl: int = 300):
        self.default_ttl = default_ttl
        self._client = _build_client(url)

    def get(self, key: str) -> Optional[Any]:
        try:
            value = self._client.get(key)
        except (ConnectionError, RedisError) as e:
            logger.warning(f"Cache get error for key {key}: {e}")
            return None
        if value is None:
            return None
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            self._client.setex(key, ttl or self.default_ttl, json.dumps(value, default=str))
        except (ConnectionError, RedisError) as e:
            logger.warning(f"Cache set error for key {key}: {e}")

    def delete(self, *keys: str) -> None:
        try:
            self._client.delete(*keys)
        except (ConnectionError, RedisError) as e:
            logger.warning(f"Cache delete error for keys {keys}: {e}")

    def clear(self) -> None:
        try:
            self._client.flushdb()
        except (ConnectionError, RedisError) as e:
            logger.warning(f"Cache clear error: {e}")


_cache: RedisCache | None = None


def get_cache() -> RedisCache:
    """Get the process-wide cache, connecting on first use."""
    global _cache
    if _cache is None:
        _cache = RedisCache(settings.REDIS_CACHE_URL, default_ttl=300)
    return _cache


def invalidate_room_cache(room_id: Any) -> None:
    get_cache().delete(ROOMS_KEY, room_key(room_id))
    logger.debug(f"Invalidated cache for room {room_id}")
