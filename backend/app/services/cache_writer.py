"""Persist resolved programs into the recommendation cache."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
from uuid import UUID

from app.api.schemas.recommendation import ProgramType, WeeklyProgram
from app.services.cache.base import CacheStore, cache_key
from app.services.schedule_normalizer import serialize_program

logger = logging.getLogger(__name__)

PROGRAM_FIELDS = tuple(program_type.cache_field for program_type in ProgramType)


class CacheWriter:
    """Merge a program into the per-user cache entry; the other program type is left as is."""

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    def persist(
        self,
        user_id: UUID | str,
        program_type: ProgramType,
        program: WeeklyProgram,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        key = cache_key(user_id)
        existing = self._store.get(key)
        entry: Dict[str, Any] = dict(existing) if isinstance(existing, Mapping) else {}

        for field, value in (metadata or {}).items():
            if field in PROGRAM_FIELDS:
                continue
            entry[field] = value
        entry[program_type.cache_field] = serialize_program(program)
        entry["createdAt"] = datetime.now(timezone.utc).isoformat()

        self._store.set(key, entry)
        logger.debug("Cached %s program for user=%s", program_type.value, user_id)
        return entry
