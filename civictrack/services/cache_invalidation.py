# File: civictrack/services/cache_invalidation.py
# Project: civictrack

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from civictrack.core.cache import CacheKey, Namespace, RedisCache

logger = logging.getLogger(__name__)


@dataclass
class InvalidationScope:
    """Who and where a mutation touched."""

    issue_id: Optional[int] = None
    ward_id: Optional[int] = None
    zone_id: Optional[int] = None
    user_ids: Set[int] = field(default_factory=set)

    def add_users(self, *user_ids: Optional[int]) -> "InvalidationScope":
        self.user_ids.update(u for u in user_ids if u is not None)
        return self


class CacheInvalidator:
    def __init__(self, cache: RedisCache):
        self.cache = cache

    def plan(self, scope: InvalidationScope) -> List[tuple]:
        """Deletions for ``scope`` as (mode, CacheKey) pairs, mode is "key" or "pattern"."""
        steps: List[tuple] = []
        if scope.issue_id is not None:
            steps.append(("key", CacheKey(Namespace.ISSUE_DETAIL, scope.issue_id)))
        steps.append(("pattern", CacheKey(Namespace.ISSUE_LIST)))
        steps.append(("pattern", CacheKey(Namespace.ADMIN_STATS)))
        if scope.ward_id is not None:
            steps.append(("pattern", CacheKey(Namespace.WARD_DATA, scope.ward_id)))
        if scope.zone_id is not None:
            steps.append(("pattern", CacheKey(Namespace.ZONE_DATA, scope.zone_id)))
        for user_id in sorted(scope.user_ids):
            steps.append(("key", CacheKey(Namespace.USER_DASHBOARD, user_id)))
            steps.append(("pattern", CacheKey(Namespace.USER_DASHBOARD, user_id)))
        return steps

    def invalidate(self, event: str, scope: InvalidationScope) -> None:
        """Fan out deletions after ``event``; a failing step never stops the rest."""
        for mode, key in self.plan(scope):
            try:
                if mode == "key":
                    self.cache.delete(key)
                else:
                    self.cache.delete_pattern(key)
            except Exception:
                logger.error("Cache invalidation step %s %s failed after %s", mode, key.render(), event, exc_info=True)
        logger.debug("Invalidated caches after %s for issue=%s ward=%s zone=%s users=%s",
                     event, scope.issue_id, scope.ward_id, scope.zone_id, sorted(scope.user_ids))

    def forget_assignees(self, ward_id: int) -> None:
        """Drop cached assignee decisions of one ward, for every department."""
        try:
            self.cache.delete_pattern(CacheKey(Namespace.ASSIGNEE, ward_id))
        except Exception:
            logger.error("Dropping assignee cache for ward %s failed", ward_id, exc_info=True)

