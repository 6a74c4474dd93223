"""SQL persistence of generated recommendation records."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import desc
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.schemas.recommendation import ProgramType
from app.db.models.recommendation_record import RecommendationRecord

logger = logging.getLogger(__name__)


def store_recommendation(db: Session, user_id: UUID, program_type: ProgramType, payload: Any) -> RecommendationRecord:
    """Add the raw generator output as the newest record for (user, type). Caller commits."""
    record = RecommendationRecord(
        user_id=user_id,
        recommendation_type=program_type.value,
        payload=payload,
    )
    db.add(record)
    db.flush()
    return record


def latest_recommendation(db: Session, user_id: UUID, program_type: ProgramType) -> Optional[RecommendationRecord]:
    return (
        db.query(RecommendationRecord)
        .filter(
            RecommendationRecord.user_id == user_id,
            RecommendationRecord.recommendation_type == program_type.value,
        )
        .order_by(desc(RecommendationRecord.created_at))
        .limit(1)
        .first()
    )


def record_as_entry(record: RecommendationRecord, program_type: ProgramType) -> Dict[str, Any]:
    """Shape a stored record like a cache entry so the resolver reads both the same way."""
    entry: Dict[str, Any] = {
        program_type.cache_field: record.payload,
        "recordId": str(record.id),
    }
    if record.created_at is not None:
        entry["createdAt"] = record.created_at.isoformat()
    return entry


class SqlRecommendationSource:
    """Backend tier of the resolver: newest stored record, read off the event loop."""

    def __init__(self, db: Session) -> None:
        self._db = db

    async def fetch_latest(self, user_id: UUID, program_type: ProgramType) -> Optional[Dict[str, Any]]:
        record = await run_in_threadpool(latest_recommendation, self._db, user_id, program_type)
        if record is None:
            logger.debug("No stored %s recommendation for user=%s", program_type.value, user_id)
            return None
        return record_as_entry(record, program_type)
