"""Completion history persistence and range queries."""
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy import asc
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.schemas.recommendation import ProgramType
from app.db.models.user_history import UserHistory
from app.services.completion_tracker import HistoryEntry

logger = logging.getLogger(__name__)


def append_history(db: Session, entry: HistoryEntry) -> UserHistory:
    row = UserHistory(
        user_id=entry.user_id,
        date=entry.date,
        type=entry.type.value,
        item_name=entry.item_name,
        completed=entry.completed,
        payload={
            "itemName": entry.item_name,
            "itemId": entry.item_id,
            "itemDetails": entry.item_details,
        },
    )
    db.add(row)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    return row


class SqlHistoryWriter:
    """Appends completion toggles as `user_history` rows."""

    def __init__(self, db: Session) -> None:
        self._db = db

    async def append(self, entry: HistoryEntry) -> None:
        await run_in_threadpool(append_history, self._db, entry)
        logger.debug(
            "History appended user=%s date=%s item=%s completed=%s",
            entry.user_id,
            entry.date.isoformat(),
            entry.item_name,
            entry.completed,
        )


def load_history_range(
    db: Session,
    user_id: UUID,
    start: date,
    end: date,
    program_type: Optional[ProgramType] = None,
) -> Dict[date, Dict[str, bool]]:
    """
    Return `{date: {item_name: completed}}` for the inclusive range.

    History is append-only; rows are applied oldest first so the latest
    toggle of an item wins.
    """
    query = db.query(UserHistory).filter(
        UserHistory.user_id == user_id,
        UserHistory.date >= start,
        UserHistory.date <= end,
    )
    if program_type is not None:
        query = query.filter(UserHistory.type == program_type.value)

    histories: Dict[date, Dict[str, bool]] = {}
    for row in query.order_by(asc(UserHistory.created_at)).all():
        histories.setdefault(row.date, {})[row.item_name] = bool(row.completed)
    return histories
