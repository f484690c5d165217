# File: civictrack/core/cache.py
# Project: civictrack

"""Redis-backed cache with typed, scoped keys.

The cache is an optimization: every operation here is best-effort. A Redis
outage turns reads into misses and writes/deletes into no-ops, it never raises
into the caller.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import redis

from civictrack.core.config import settings

logger = logging.getLogger(__name__)


class Namespace(Enum):
    # value: (prefix, requires a scope id)
    ISSUE_LIST = ("issues:list", False)
    ISSUE_DETAIL = ("issue:detail", True)
    ADMIN_STATS = ("admin:stats", False)
    USER_DASHBOARD = ("user:dashboard", True)
    WARD_DATA = ("ward:data", True)
    ZONE_DATA = ("zone:data", True)
    GEO_DATA = ("geo:data", False)
    ASSIGNEE = ("assignee", True)

    @property
    def prefix(self) -> str:
        return self.value[0]

    @property
    def scoped(self) -> bool:
        return self.value[1]


@dataclass(frozen=True)
class CacheKey:
    """A cache key as an explicit (namespace, scope id, sub key) tuple.

    Scoped namespaces (ward, zone, user, issue, assignee) cannot be addressed
    without their scope id, so a delete can never fan out across tenants.
    """

    namespace: Namespace
    scope_id: Optional[Any] = None
    sub_key: Optional[str] = None

    def __post_init__(self):
        if self.namespace.scoped and self.scope_id in (None, ""):
            raise ValueError(f"{self.namespace.name} keys require a scope id")

    def render(self) -> str:
        parts = [self.namespace.prefix]
        if self.scope_id is not None:
            parts.append(str(self.scope_id))
        if self.sub_key:
            parts.append(self.sub_key)
        return ":".join(parts)

    def pattern(self) -> str:
        """Glob matching this key and everything nested under it."""
        return f"{self.render()}:*"


class RedisCache:
    def __init__(self, client: Optional[redis.Redis] = None, enabled: bool = True):
        self.client = client
        self.enabled = enabled and client is not None

    @classmethod
    def from_settings(cls) -> "RedisCache":
        if not settings.cache_enabled:
            return cls(None, enabled=False)
        client = redis.Redis.from_url(
            settings.redis_url,
            socket_connect_timeout=2,
            socket_timeout=2,
            decode_responses=True,
        )
        return cls(client)

    def get(self, key: CacheKey) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            raw = self.client.get(key.render())
        except redis.RedisError as e:
            logger.warning("Cache get failed for %s: %s", key.render(), e)
            return None
        if raw is None:
            logger.debug("Cache miss %s", key.render())
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key.render())
            return None

    def set(self, key: CacheKey, value: Any, ttl: int) -> None:
        if not self.enabled:
            return
        try:
            self.client.setex(key.render(), ttl, json.dumps(value, default=str))
        except (redis.RedisError, TypeError) as e:
            logger.warning("Cache set failed for %s: %s", key.render(), e)

    def delete(self, key: CacheKey) -> None:
        if not self.enabled:
            return
        try:
            self.client.delete(key.render())
        except redis.RedisError as e:
            logger.warning("Cache delete failed for %s: %s", key.render(), e)

    def delete_pattern(self, key: CacheKey) -> int:
        """Delete every key nested under ``key``; returns how many went away."""
        if not self.enabled:
            return 0
        pattern = key.pattern()
        try:
            doomed = list(self.client.scan_iter(match=pattern, count=500))
            if doomed:
                self.client.delete(*doomed)
            return len(doomed)
        except redis.RedisError as e:
            logger.warning("Cache pattern delete failed for %s: %s", pattern, e)
            return 0


_cache: Optional[RedisCache] = None


def get_cache() -> RedisCache:
    global _cache
    if _cache is None:
        _cache = RedisCache.from_settings()
    return _cache
