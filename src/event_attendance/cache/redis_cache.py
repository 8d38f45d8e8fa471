"""Redis cache service.

Values are stored as JSON under a project-wide key prefix. Every Redis
failure is logged and turned into a cache miss so callers never see it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis

from ..core.constants import DEFAULT_CACHE_KEY_PREFIX, DEFAULT_CACHE_TTL_SECONDS
from .base import CacheLayer

logger = logging.getLogger(__name__)


class RedisCacheService(CacheLayer):
    def __init__(
        self,
        client: redis.Redis,
        *,
        key_prefix: str = DEFAULT_CACHE_KEY_PREFIX,
        default_ttl: int = DEFAULT_CACHE_TTL_SECONDS,
    ):
        self._redis = client
        self._prefix = key_prefix
        self._default_ttl = int(default_ttl)

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str = DEFAULT_CACHE_KEY_PREFIX, socket_timeout: float = 2.0) -> "RedisCacheService":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client, key_prefix=key_prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Optional[Any]:
        cache_key = self._key(key)
        try:
            data = self._redis.get(cache_key)
        except redis.RedisError as e:
            logger.warning("Cache error (get %s): %s", cache_key, e)
            return None

        if data is None:
            logger.debug("Cache MISS: %s", cache_key)
            return None

        try:
            value = json.loads(data)
        except ValueError:
            logger.warning("Cache entry %s is not valid JSON, ignoring it", cache_key)
            return None
        logger.debug("Cache HIT: %s", cache_key)
        return value

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        cache_key = self._key(key)
        ttl = self._default_ttl if ttl_seconds is None else int(ttl_seconds)
        try:
            payload = json.dumps(value, default=str)
            if ttl > 0:
                self._redis.setex(cache_key, ttl, payload)
            else:
                self._redis.set(cache_key, payload)
        except (redis.RedisError, TypeError) as e:
            logger.warning("Cache error (set %s): %s", cache_key, e)
            return False
        logger.debug("Cache set: %s (TTL: %ss)", cache_key, ttl)
        return True

    def delete(self, key: str) -> bool:
        cache_key = self._key(key)
        try:
            return self._redis.delete(cache_key) > 0
        except redis.RedisError as e:
            logger.warning("Cache error (delete %s): %s", cache_key, e)
            return False

    def clear_pattern(self, pattern: str) -> int:
        search = self._key(pattern)
        try:
            keys = list(self._redis.scan_iter(match=search, count=500))
            if not keys:
                return 0
            deleted = int(self._redis.delete(*keys))
        except redis.RedisError as e:
            logger.warning("Cache error (clear_pattern %s): %s", search, e)
            return 0
        logger.info("Cache pattern cleared: %s (%d keys deleted)", pattern, deleted)
        return deleted

    def ping(self) -> bool:
        try:
            return bool(self._redis.ping())
        except redis.RedisError as e:
            logger.warning("Cache health check failed: %s", e)
            return False
