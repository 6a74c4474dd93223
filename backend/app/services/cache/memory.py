"""In-process cache store."""
from __future__ import annotations

import copy
import logging
import threading
from time import monotonic
from typing import Any, Dict, Optional, Tuple

from app.services.cache.base import CacheStore


logger = logging.getLogger(__name__)


class InMemoryCacheStore(CacheStore):
    """Dict-backed store; values are deep-copied in and out so callers never share state."""

    def __init__(self, ttl_seconds: int | None = None) -> None:
        self._ttl_seconds = ttl_seconds
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and monotonic() >= expires_at:
                logger.debug("Cache entry %s expired", key)
                del self._entries[key]
                return None
            return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        expires_at = monotonic() + self._ttl_seconds if self._ttl_seconds else None
        with self._lock:
            self._entries[key] = (copy.deepcopy(value), expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
