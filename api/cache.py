# cache.py
# Redis cache for the admin dashboard numbers

# The dashboard scans the students and notes collections on every load, so
# the computed statistics are kept in Redis for STATS_CACHE_TTL seconds.
# Approving, rejecting or multi-uploading notes drops the cached copy.
# When Redis is disabled or unreachable every call degrades to a miss and
# the statistics are simply recomputed.

# @see: admin.py - AdminService.statistics() via get_or_compute()
# @see: approval.py - invalidate_admin_statistics() after state changes
# @note: REDIS_ENABLED=false skips Redis entirely (the test suite does)

from __future__ import annotations

import json
from typing import Any, Callable, Optional

import redis

from api import config
from api.logging_config import get_logger

logger = get_logger("cache")

KEY_PREFIX = "semnotes"
ADMIN_STATS_KEY = f"{KEY_PREFIX}:admin:statistics"


class StatsCache:
    """
    JSON values in Redis with a lazily opened connection.

    A failed connection is remembered for the life of the process; after
    that get() always misses and set()/delete() report False.
    """

    def __init__(self, url: Optional[str] = None, enabled: Optional[bool] = None):
        self.url = url or config.REDIS_URL
        self.enabled = config.REDIS_ENABLED if enabled is None else enabled
        self._client: Optional[redis.Redis] = None
        self._unreachable = False

    def _connection(self) -> Optional[redis.Redis]:
        if not self.enabled or self._unreachable:
            return None
        if self._client is None:
            try:
                client = redis.Redis.from_url(
                    self.url,
                    decode_responses=True,
                    socket_connect_timeout=3,
                    socket_timeout=3,
                )
                client.ping()
            except redis.RedisError as exc:
                logger.warning("Redis at %s unavailable, dashboard caching off: %s", self.url, exc)
                self._unreachable = True
                return None
            self._client = client
        return self._client

    def is_available(self) -> bool:
        return self._connection() is not None

    def get(self, key: str) -> Optional[Any]:
        client = self._connection()
        if client is None:
            return None
        try:
            raw = client.get(key)
        except redis.RedisError as exc:
            logger.debug("Cache read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable cache entry %s", key)
            return None

    def set(self, key: str, value: Any, ttl: int) -> bool:
        client = self._connection()
        if client is None:
            return False
        try:
            client.set(key, json.dumps(value, default=str), ex=ttl)
        except redis.RedisError as exc:
            logger.debug("Cache write failed for %s: %s", key, exc)
            return False
        return True

    def delete(self, key: str) -> bool:
        client = self._connection()
        if client is None:
            return False
        try:
            client.delete(key)
        except redis.RedisError as exc:
            logger.debug("Cache delete failed for %s: %s", key, exc)
            return False
        return True

    def get_or_compute(self, key: str, compute: Callable[[], Any], ttl: int, refresh: bool = False) -> Any:
        """Cached value for key, or compute() stored for ttl seconds."""
        if not refresh:
            cached = self.get(key)
            if cached is not None:
                return cached
        value = compute()
        self.set(key, value, ttl)
        return value


stats_cache = StatsCache()


def invalidate_admin_statistics(cache: Optional[StatsCache] = None) -> None:
    """Drop the dashboard counts from the given cache, or the shared one."""
    (cache or stats_cache).delete(ADMIN_STATS_KEY)
