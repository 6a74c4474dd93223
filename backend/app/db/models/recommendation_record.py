"""Stored AI recommendation payloads."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base
from app.db.types import JSONBCompat


class RecommendationRecord(Base):
    __tablename__ = "recommendation_records"
    __table_args__ = (
        Index("ix_recommendation_records_user_type", "user_id", "recommendation_type"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # "workout" or "diet"
    recommendation_type = Column(String(length=20), nullable=False)
    # Raw generator output; weekly-shaped or a flat single program.
    payload = Column(JSONBCompat, nullable=False, default=dict)
    # Python-side default keeps sub-second ordering on SQLite.
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
