"""Survey submission ORM model."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, func
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base
from app.db.types import JSONBCompat


class Survey(Base):
    __tablename__ = "surveys"
    __table_args__ = (Index("ix_surveys_user_id", "user_id"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # Canonical English weekday names.
    selected_days = Column(JSONBCompat, nullable=False, default=list)
    answers = Column(JSONBCompat, nullable=True)
    # Python-side default keeps sub-second ordering on SQLite.
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
