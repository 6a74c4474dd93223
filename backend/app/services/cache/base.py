"""Recommendation cache store interface."""
from __future__ import annotations

from typing import Any, Optional


def cache_key(user_id: object) -> str:
    """Per-user key for cached recommendation entries."""
    return f"recommendations_{user_id}"


# Shared key written by older clients, before entries were scoped per user.
LEGACY_CACHE_KEY = "recommendations"


class CacheStore:
    """Base interface for session-scoped key/value stores."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError
