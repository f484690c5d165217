# File: civictrack/core/ratelimit.py
# Project: civictrack

from slowapi import Limiter
from slowapi.util import get_remote_address
from civictrack.core.config import settings

# share counters across API instances through the same Redis as the cache
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.redis_url if settings.cache_enabled else "memory://",
)
