"""Resolve a user's weekly program from the first source that has one."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Tuple
from uuid import UUID

from app.api.schemas.recommendation import ProgramType, Tier, WeeklyProgram
from app.observability.metrics import timed
from app.services.cache.base import LEGACY_CACHE_KEY, CacheStore, cache_key
from app.services.cache_writer import PROGRAM_FIELDS, CacheWriter
from app.services.schedule_normalizer import empty_program, is_empty_program, normalize
from app.services.weekdays import try_parse_weekday

logger = logging.getLogger(__name__)

NO_RECOMMENDATION_MESSAGE = (
    "No recommendation found yet. Complete the survey to get a personalized program."
)

# Summary fields of a flat program that are reported back as metadata.
SUMMARY_FIELDS = (
    "programName",
    "weeklySchedule",
    "targetMuscles",
    "mealStyle",
    "dailyCalories",
    "createdAt",
    "recordId",
)


class ResolutionCancelled(RuntimeError):
    """Raised to the caller that cancelled an in-flight resolution."""


class CancellationToken:
    """
    Cooperative cancel flag checked between resolver tiers.

    `disconnected`, when given, is awaited before each cache write and cancels
    the token once it reports True (e.g. `Request.is_disconnected`).
    """

    def __init__(self, disconnected: Optional[Callable[[], Awaitable[bool]]] = None) -> None:
        self._cancelled = False
        self._disconnected = disconnected

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ResolutionCancelled("recommendation resolution was cancelled")

    async def check(self) -> None:
        if not self._cancelled and self._disconnected is not None and await self._disconnected():
            logger.info("Consumer went away; cancelling recommendation resolution")
            self._cancelled = True
        self.raise_if_cancelled()


class RecommendationSource(Protocol):
    async def fetch_latest(self, user_id: UUID, program_type: ProgramType) -> Optional[Dict[str, Any]]:
        """Newest stored record for the user and program type, or None."""


@dataclass
class Resolution:
    program: WeeklyProgram
    origin: Tier
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return self.origin is not Tier.NONE


def split_record(payload: Any, program_type: ProgramType) -> Tuple[WeeklyProgram, Dict[str, Any]]:
    """
    Normalise a payload into (program, metadata).

    Accepts a full record carrying a `workouts`/`diets` sub-field, a weekly
    map keyed by day, or a flat single program.
    """
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError:
            return empty_program(), {}

    if not isinstance(payload, Mapping):
        return normalize(payload), {}

    if program_type.cache_field in payload:
        metadata = {
            key: value
            for key, value in payload.items()
            if key not in PROGRAM_FIELDS and try_parse_weekday(key) is None
        }
        return normalize(payload[program_type.cache_field]), metadata

    metadata = {key: payload[key] for key in SUMMARY_FIELDS if key in payload}
    return normalize(payload), metadata


class RecommendationResolver:
    """
    Walks explicit payload, cache, then backend, stopping at the first
    non-empty program. Tiers run strictly one after another.
    """

    def __init__(
        self,
        cache: CacheStore,
        source: Optional[RecommendationSource] = None,
        writer: Optional[CacheWriter] = None,
    ) -> None:
        self._cache = cache
        self._source = source
        self._writer = writer or CacheWriter(cache)

    async def resolve(
        self,
        user_id: UUID,
        program_type: ProgramType,
        explicit_payload: Any = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Resolution:
        token = cancel_token or CancellationToken()
        with timed("recommendations.resolve", {"program_type": program_type.value}) as extra:
            resolution = await self._resolve(user_id, program_type, explicit_payload, token)
            extra["origin"] = resolution.origin.value
        logger.info(
            "Resolved %s program for user=%s from %s",
            program_type.value,
            user_id,
            resolution.origin.value,
        )
        return resolution

    async def _resolve(
        self,
        user_id: UUID,
        program_type: ProgramType,
        explicit_payload: Any,
        token: CancellationToken,
    ) -> Resolution:
        token.raise_if_cancelled()
        if explicit_payload is not None:
            program, metadata = split_record(explicit_payload, program_type)
            if not is_empty_program(program):
                await token.check()
                self._writer.persist(user_id, program_type, program, metadata)
                return Resolution(program=program, origin=Tier.EXPLICIT, metadata=metadata)
            logger.info("Explicit %s payload for user=%s was empty; falling through", program_type.value, user_id)

        token.raise_if_cancelled()
        cached = self._from_cache(user_id, program_type)
        if cached is not None:
            resolution, key = cached
            if key == LEGACY_CACHE_KEY:
                await token.check()
                logger.info("Migrating legacy cached %s program to user=%s", program_type.value, user_id)
                self._writer.persist(user_id, program_type, resolution.program, resolution.metadata)
            return resolution

        token.raise_if_cancelled()
        record = await self._from_backend(user_id, program_type)
        await token.check()
        if record is not None:
            program, metadata = split_record(record, program_type)
            if not is_empty_program(program):
                self._writer.persist(user_id, program_type, program, metadata)
                return Resolution(program=program, origin=Tier.BACKEND, metadata=metadata)
            logger.info("Stored %s record for user=%s was empty", program_type.value, user_id)

        return Resolution(
            program=empty_program(),
            origin=Tier.NONE,
            metadata={"message": NO_RECOMMENDATION_MESSAGE},
        )

    def _from_cache(self, user_id: UUID, program_type: ProgramType) -> Optional[Tuple[Resolution, str]]:
        for key in (cache_key(user_id), LEGACY_CACHE_KEY):
            entry = self._cache.get(key)
            if not isinstance(entry, Mapping) or program_type.cache_field not in entry:
                continue
            program, metadata = split_record(entry, program_type)
            if is_empty_program(program):
                continue
            return Resolution(program=program, origin=Tier.CACHE, metadata=metadata), key
        return None

    async def _from_backend(self, user_id: UUID, program_type: ProgramType) -> Optional[Dict[str, Any]]:
        if self._source is None:
            return None
        try:
            return await self._source.fetch_latest(user_id, program_type)
        except Exception:
            logger.warning(
                "Recommendation backend lookup failed for user=%s type=%s",
                user_id,
                program_type.value,
                exc_info=True,
            )
            return None
