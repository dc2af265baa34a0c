"""
Redis caching utilities for frequently accessed data
Cache failures never break a request: reads miss and writes are skipped.
"""

import json
import logging
from typing import Any, Optional

import redis

from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)

CATALOG_CACHE_PREFIX = "catalog"
CATALOG_TTL = 3600
GEOCODE_CACHE_PREFIX = "geo"
GEOCODE_TTL = 7 * 24 * 3600


class Cache:
    """Redis cache wrapper with automatic serialization"""

    def _get_client(self) -> Optional[redis.Redis]:
        try:
            return get_redis_client()
        except redis.RedisError as e:
            logger.debug(f"⚠️ Redis cache unavailable: {e}")
            return None

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"Cache MISS: {key}")
            return None
        except (redis.RedisError, ValueError) as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (default 1 hour)"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.setex(key, ttl, json.dumps(value, default=str))
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except (redis.RedisError, TypeError) as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching pattern (e.g., 'catalog:*')"""
        client = self._get_client()
        if not client:
            return 0

        try:
            keys = list(client.scan_iter(match=pattern))
            if keys:
                deleted = client.delete(*keys)
                logger.debug(f"✅ Cache DELETE pattern: {pattern} ({deleted} keys)")
                return deleted
            return 0
        except redis.RedisError as e:
            logger.error(f"❌ Cache delete pattern error for {pattern}: {e}")
            return 0


# Global cache instance
cache = Cache()


def catalog_key(name: str, *parts) -> str:
    suffix = ":".join(str(p) for p in parts if p is not None)
    return f"{CATALOG_CACHE_PREFIX}:{name}:{suffix}" if suffix else f"{CATALOG_CACHE_PREFIX}:{name}"


def invalidate_catalog_cache() -> int:
    """Drop cached tiers/add-ons/wall-mount pricing after an admin change"""
    return cache.delete_pattern(f"{CATALOG_CACHE_PREFIX}:*")


def geocode_key(provider: str, address: str) -> str:
    return f"{GEOCODE_CACHE_PREFIX}:{provider}:{address.strip().lower()}"
