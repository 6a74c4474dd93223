"""Cache store factory."""
from __future__ import annotations

import logging
from functools import lru_cache

from app.core.config import settings
from app.services.cache.base import CacheStore
from app.services.cache.memory import InMemoryCacheStore


logger = logging.getLogger(__name__)


@lru_cache
def get_cache_store() -> CacheStore:
    provider = settings.cache_provider.lower()
    if provider != "memory":
        logger.warning("Unknown cache provider %s; using in-memory store", provider)
    return InMemoryCacheStore(ttl_seconds=settings.cache_ttl_seconds)


@lru_cache
def get_pending_history_store() -> CacheStore:
    """Store for unsent completion toggles; entries never expire."""
    return InMemoryCacheStore()
