from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

import pytest

from app.api.schemas.recommendation import ProgramType, Tier
from app.services.cache.base import LEGACY_CACHE_KEY, cache_key
from app.services.cache.memory import InMemoryCacheStore
from app.services.recommendation_resolver import (
    NO_RECOMMENDATION_MESSAGE,
    CancellationToken,
    RecommendationResolver,
    ResolutionCancelled,
)
from app.services.schedule_normalizer import is_empty_program


class _SpyCache(InMemoryCacheStore):
    def __init__(self) -> None:
        super().__init__()
        self.reads: List[str] = []
        self.writes: List[str] = []

    def get(self, key: str):
        self.reads.append(key)
        return super().get(key)

    def set(self, key: str, value: Any) -> None:
        self.writes.append(key)
        super().set(key, value)


class _FakeSource:
    def __init__(self, record: Optional[Dict[str, Any]] = None, error: Exception | None = None) -> None:
        self.record = record
        self.error = error
        self.calls: List[tuple[UUID, ProgramType]] = []

    async def fetch_latest(self, user_id: UUID, program_type: ProgramType) -> Optional[Dict[str, Any]]:
        self.calls.append((user_id, program_type))
        if self.error:
            raise self.error
        return self.record


class _CancellingSource(_FakeSource):
    def __init__(self, token: CancellationToken, record: Dict[str, Any]) -> None:
        super().__init__(record=record)
        self.token = token

    async def fetch_latest(self, user_id: UUID, program_type: ProgramType) -> Optional[Dict[str, Any]]:
        self.token.cancel()
        return await super().fetch_latest(user_id, program_type)


def _resolve(resolver: RecommendationResolver, user_id: UUID, program_type=ProgramType.WORKOUT, payload=None, **kwargs):
    return asyncio.run(resolver.resolve(user_id, program_type, payload, **kwargs))


def test_explicit_payload_skips_cache_and_backend() -> None:
    cache = _SpyCache()
    source = _FakeSource(record={"workouts": {"Monday": [{"name": "Squat"}]}})
    resolver = RecommendationResolver(cache, source)
    user_id = uuid4()

    resolution = _resolve(resolver, user_id, payload={"Monday": [{"name": "Push-up"}]})

    assert resolution.origin is Tier.EXPLICIT
    assert [item.name for item in resolution.program["Monday"]] == ["Push-up"]
    assert source.calls == []
    assert not any(key == LEGACY_CACHE_KEY for key in cache.reads)
    assert cache.writes == [cache_key(user_id)]


def test_explicit_full_record_uses_program_sub_field() -> None:
    resolver = RecommendationResolver(InMemoryCacheStore(), _FakeSource())
    payload = {
        "diets": {"Tuesday": [{"name": "Bibimbap", "calories": 600}]},
        "workouts": {"Tuesday": [{"name": "Run"}]},
        "mealStyle": "Korean",
    }

    resolution = _resolve(resolver, uuid4(), ProgramType.DIET, payload)

    assert resolution.origin is Tier.EXPLICIT
    assert [item.name for item in resolution.program["Tuesday"]] == ["Bibimbap"]
    assert resolution.metadata == {"mealStyle": "Korean"}


def test_nothing_anywhere_resolves_to_none() -> None:
    cache = _SpyCache()
    source = _FakeSource(record=None)
    resolver = RecommendationResolver(cache, source)

    resolution = _resolve(resolver, uuid4())

    assert resolution.origin is Tier.NONE
    assert not resolution.found
    assert is_empty_program(resolution.program)
    assert len(resolution.program) == 7
    assert resolution.metadata["message"] == NO_RECOMMENDATION_MESSAGE
    assert len(source.calls) == 1
    assert cache.writes == []


def test_empty_explicit_payload_falls_through() -> None:
    source = _FakeSource(record=None)
    resolver = RecommendationResolver(InMemoryCacheStore(), source)

    resolution = _resolve(resolver, uuid4(), payload={})

    assert resolution.origin is Tier.NONE
    assert len(source.calls) == 1


def test_cache_hit_returns_metadata_without_backend() -> None:
    cache = InMemoryCacheStore()
    user_id = uuid4()
    cache.set(cache_key(user_id), {"workouts": {"Friday": [{"name": "Row"}]}, "programName": "Back day"})
    source = _FakeSource(record={"workouts": {"Monday": ["Run"]}})

    resolution = _resolve(RecommendationResolver(cache, source), user_id)

    assert resolution.origin is Tier.CACHE
    assert [item.name for item in resolution.program["Friday"]] == ["Row"]
    assert resolution.metadata["programName"] == "Back day"
    assert source.calls == []


def test_legacy_cache_entry_is_migrated() -> None:
    cache = InMemoryCacheStore()
    user_id = uuid4()
    cache.set(LEGACY_CACHE_KEY, {"diets": {"Sunday": [{"name": "Porridge"}]}})

    resolution = _resolve(RecommendationResolver(cache, _FakeSource()), user_id, ProgramType.DIET)

    assert resolution.origin is Tier.CACHE
    migrated = cache.get(cache_key(user_id))
    assert migrated["diets"]["Sunday"][0]["name"] == "Porridge"


def test_cache_entry_for_other_type_is_a_miss() -> None:
    cache = InMemoryCacheStore()
    user_id = uuid4()
    cache.set(cache_key(user_id), {"diets": {"Sunday": [{"name": "Porridge"}]}})
    source = _FakeSource(record=None)

    resolution = _resolve(RecommendationResolver(cache, source), user_id, ProgramType.WORKOUT)

    assert resolution.origin is Tier.NONE
    assert len(source.calls) == 1


def test_backend_record_is_cached_once_found() -> None:
    cache = InMemoryCacheStore()
    user_id = uuid4()
    source = _FakeSource(record={"workouts": {"Monday": {"Wednesday": [{"name": "Lunge"}]}}, "recordId": "r-1"})
    resolver = RecommendationResolver(cache, source)

    first = _resolve(resolver, user_id)
    second = _resolve(resolver, user_id)

    assert first.origin is Tier.BACKEND
    assert [item.name for item in first.program["Wednesday"]] == ["Lunge"]
    assert first.metadata["recordId"] == "r-1"
    assert second.origin is Tier.CACHE
    assert len(source.calls) == 1
    assert cache.get(cache_key(user_id))["workouts"]["Wednesday"][0]["name"] == "Lunge"


def test_backend_error_is_treated_as_not_found() -> None:
    source = _FakeSource(error=ConnectionError("backend down"))
    resolver = RecommendationResolver(InMemoryCacheStore(), source)

    resolution = _resolve(resolver, uuid4())

    assert resolution.origin is Tier.NONE
    assert len(source.calls) == 1


def test_missing_source_resolves_to_none() -> None:
    resolution = _resolve(RecommendationResolver(InMemoryCacheStore()), uuid4())

    assert resolution.origin is Tier.NONE


def test_cancelled_before_start_raises() -> None:
    token = CancellationToken()
    token.cancel()
    source = _FakeSource()
    resolver = RecommendationResolver(InMemoryCacheStore(), source)

    with pytest.raises(ResolutionCancelled):
        _resolve(resolver, uuid4(), payload={"Monday": ["Run"]}, cancel_token=token)
    assert source.calls == []


def test_cancel_during_backend_call_discards_result() -> None:
    token = CancellationToken()
    cache = _SpyCache()
    source = _CancellingSource(token, record={"workouts": {"Monday": ["Run"]}})
    user_id = uuid4()

    with pytest.raises(ResolutionCancelled):
        _resolve(RecommendationResolver(cache, source), user_id, cancel_token=token)

    assert token.cancelled
    assert cache.writes == []
    assert cache.get(cache_key(user_id)) is None


def test_disconnect_callback_cancels_before_cache_write() -> None:
    async def _disconnected() -> bool:
        return True

    token = CancellationToken(_disconnected)
    cache = _SpyCache()
    source = _FakeSource(record={"workouts": {"Monday": ["Run"]}})

    with pytest.raises(ResolutionCancelled):
        _resolve(RecommendationResolver(cache, source), uuid4(), cancel_token=token)

    assert token.cancelled
    assert len(source.calls) == 1
    assert cache.writes == []


def test_connected_callback_lets_resolution_finish() -> None:
    async def _connected() -> bool:
        return False

    token = CancellationToken(_connected)
    resolver = RecommendationResolver(InMemoryCacheStore(), _FakeSource(record={"workouts": {"Monday": ["Run"]}}))

    resolution = _resolve(resolver, uuid4(), cancel_token=token)

    assert resolution.origin is Tier.BACKEND
    assert not token.cancelled
