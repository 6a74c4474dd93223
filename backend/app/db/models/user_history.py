"""Per-day completion history ORM model."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, String, Text, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base
from app.db.types import JSONBCompat


class UserHistory(Base):
    __tablename__ = "user_history"
    __table_args__ = (
        Index("ix_user_history_user_id", "user_id"),
        Index("ix_user_history_user_date", "user_id", "date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    type = Column(String(length=20), nullable=False)
    item_name = Column(Text, nullable=False)
    completed = Column(Boolean, nullable=False, server_default=sa_text("false"))
    # itemId + itemDetails so history stays readable after the program is regenerated.
    payload = Column(JSONBCompat, nullable=True)
    # Python-side default keeps sub-second ordering on SQLite.
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
