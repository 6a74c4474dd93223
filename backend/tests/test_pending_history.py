from __future__ import annotations

from datetime import date
from uuid import uuid4

from app.api.schemas.recommendation import ProgramType
from app.services.cache.memory import InMemoryCacheStore
from app.services.completion_tracker import HistoryEntry
from app.services.pending_history import PendingHistoryQueue, pending_key


def test_queue_survives_across_instances_and_clears_when_empty() -> None:
    store = InMemoryCacheStore()
    user_id = uuid4()
    entry = HistoryEntry(
        user_id=user_id,
        date=date(2024, 3, 4),
        type=ProgramType.DIET,
        item_name="Porridge",
        completed=True,
        item_id="item-9",
        item_details={"calories": 300},
    )

    assert PendingHistoryQueue(store).save(user_id, [entry]) == 1
    assert PendingHistoryQueue(store).load(user_id) == [entry]

    PendingHistoryQueue(store).save(user_id, [])
    assert store.get(pending_key(user_id)) is None
    assert PendingHistoryQueue(store).load(user_id) == []


def test_unreadable_entries_are_dropped() -> None:
    store = InMemoryCacheStore()
    user_id = uuid4()
    store.set(pending_key(user_id), [{"date": "not-a-date"}])

    assert PendingHistoryQueue(store).load(user_id) == []
