"""Queue of completion toggles whose history write has not landed yet."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping
from uuid import UUID

from app.api.schemas.recommendation import ProgramType
from app.services.cache.base import CacheStore
from app.services.completion_tracker import HistoryEntry

logger = logging.getLogger(__name__)


def pending_key(user_id: object) -> str:
    return f"history_pending_{user_id}"


class PendingHistoryQueue:
    """Per-user list of unsent `HistoryEntry` values kept in a `CacheStore`."""

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    def load(self, user_id: UUID) -> List[HistoryEntry]:
        raw = self._store.get(pending_key(user_id))
        if not isinstance(raw, list):
            return []
        entries: List[HistoryEntry] = []
        for item in raw:
            try:
                entries.append(_entry_from_dict(item))
            except (KeyError, TypeError, ValueError):
                logger.warning("Dropping unreadable pending history entry for user=%s", user_id)
        return entries

    def save(self, user_id: UUID, entries: Iterable[HistoryEntry]) -> int:
        """Replace the user's queue; an empty queue removes the key."""
        payload = [_entry_to_dict(entry) for entry in entries]
        key = pending_key(user_id)
        if payload:
            self._store.set(key, payload)
            logger.info("Queued %d unsent history entries for user=%s", len(payload), user_id)
        else:
            self._store.delete(key)
        return len(payload)


def _entry_to_dict(entry: HistoryEntry) -> Dict[str, Any]:
    return {
        "date": entry.date.isoformat(),
        "type": entry.type.value,
        "itemName": entry.item_name,
        "completed": entry.completed,
        "itemId": entry.item_id,
        "itemDetails": dict(entry.item_details),
        "userId": str(entry.user_id),
    }


def _entry_from_dict(item: Mapping[str, Any]) -> HistoryEntry:
    return HistoryEntry(
        user_id=UUID(str(item["userId"])),
        date=date.fromisoformat(item["date"]),
        type=ProgramType(item["type"]),
        item_name=item["itemName"],
        completed=bool(item["completed"]),
        item_id=item.get("itemId"),
        item_details=dict(item.get("itemDetails") or {}),
    )
