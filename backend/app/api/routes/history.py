"""Completion history and calendar API routes."""
from __future__ import annotations

import calendar
from datetime import date
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.schemas.history import (
    CalendarDay,
    CalendarResponse,
    DaySummary,
    HistoryRangeResponse,
    HistoryRetryRequest,
    HistoryRetryResponse,
    HistoryToggleRequest,
    HistoryToggleResponse,
)
from app.api.schemas.recommendation import ProgramType
from app.db.deps import get_db
from app.db.models.user import User
from app.observability.metrics import log_metric
from app.observability.tracing import trace
from app.services.cache.base import CacheStore
from app.services.cache.factory import get_pending_history_store
from app.services.completion_tracker import CompletionTracker, SyncStatus
from app.services.history_service import SqlHistoryWriter, load_history_range
from app.services.pending_history import PendingHistoryQueue

router = APIRouter()


def _require_user(db: Session, user_id: UUID) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.post("/history", response_model=HistoryToggleResponse, tags=["history"])
async def toggle_completion(
    payload: HistoryToggleRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    pending_store: CacheStore = Depends(get_pending_history_store),
) -> HistoryToggleResponse:
    """Record a completion toggle; the toggle stands even when the history write fails."""
    await run_in_threadpool(_require_user, db, payload.user_id)
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/history",
        "user_id": str(payload.user_id),
        "date": payload.date.isoformat(),
        "type": payload.type.value,
        "completed": payload.completed,
        "request_id": request_id,
    }
    queue = PendingHistoryQueue(pending_store)

    with trace(
        "history.toggle",
        metadata=metadata,
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        tracker = CompletionTracker(payload.user_id, SqlHistoryWriter(db))
        existing = await run_in_threadpool(
            load_history_range, db, payload.user_id, payload.date, payload.date, payload.type
        )
        tracker.seed(existing, program_type=payload.type)
        tracker.restore_pending(queue.load(payload.user_id))
        record = await tracker.set_completion(
            payload.date,
            payload.item_name,
            payload.completed,
            program_type=payload.type,
            details=payload.item_details,
            item_id=payload.item_id,
        )
        queue.save(payload.user_id, tracker.pending_entries())
        summary = tracker.get_day_summary(payload.date, payload.type)

    log_metric(
        "history.toggle.synced",
        1 if record.sync_status is SyncStatus.SYNCED else 0,
        metadata={"user_id": str(payload.user_id), "type": payload.type.value},
    )
    return HistoryToggleResponse(
        user_id=payload.user_id,
        date=record.date,
        type=record.program_type,
        item_name=record.item_name,
        completed=record.done,
        item_id=record.item_id,
        sync_status=record.sync_status.value,
        summary=DaySummary(completed=summary.completed, total=summary.total, state=summary.state.value),
        request_id=request_id or "",
    )


@router.post("/history/retry", response_model=HistoryRetryResponse, tags=["history"])
async def retry_pending_history(
    payload: HistoryRetryRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    pending_store: CacheStore = Depends(get_pending_history_store),
) -> HistoryRetryResponse:
    """Re-send toggles whose history write failed earlier."""
    await run_in_threadpool(_require_user, db, payload.user_id)
    request_id = getattr(http_request.state, "request_id", None)
    queue = PendingHistoryQueue(pending_store)

    with trace(
        "history.retry",
        metadata={"route": "/history/retry", "user_id": str(payload.user_id), "request_id": request_id},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        tracker = CompletionTracker(payload.user_id, SqlHistoryWriter(db))
        tracker.restore_pending(queue.load(payload.user_id))
        retried = len(tracker.pending_records())
        synced = await tracker.retry_pending()
        remaining = queue.save(payload.user_id, tracker.pending_entries())

    log_metric(
        "history.retry.synced",
        synced,
        metadata={"user_id": str(payload.user_id), "pending": remaining},
    )
    return HistoryRetryResponse(
        user_id=payload.user_id,
        retried=retried,
        synced=synced,
        pending=remaining,
        request_id=request_id or "",
    )
@router.get("/history", response_model=HistoryRangeResponse, tags=["history"])
def get_history(
    http_request: Request,
    user_id: UUID = Query(..., description="User owning the history"),
    start: date = Query(...),
    end: date = Query(...),
    type: Optional[ProgramType] = Query(default=None),
    db: Session = Depends(get_db),
) -> HistoryRangeResponse:
    """Completion flags per date and item for an inclusive date range."""
    if end < start:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="end must not be before start")
    _require_user(db, user_id)
    request_id = getattr(http_request.state, "request_id", None)

    with trace(
        "history.range",
        metadata={"route": "/history", "start": start.isoformat(), "end": end.isoformat()},
        user_id=str(user_id),
        request_id=request_id,
    ):
        histories = load_history_range(db, user_id, start, end, type)

    log_metric("history.range.days", len(histories), metadata={"user_id": str(user_id)})
    return HistoryRangeResponse(
        user_id=user_id,
        start=start,
        end=end,
        histories=histories,
        request_id=request_id or "",
    )


@router.get("/calendar", response_model=CalendarResponse, tags=["history"])
def get_calendar(
    http_request: Request,
    user_id: UUID = Query(..., description="User owning the history"),
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    type: Optional[ProgramType] = Query(default=None),
    db: Session = Depends(get_db),
    pending_store: CacheStore = Depends(get_pending_history_store),
) -> CalendarResponse:
    """Month view: completion summary and tile style per day."""
    _require_user(db, user_id)
    request_id = getattr(http_request.state, "request_id", None)
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])

    with trace(
        "history.calendar",
        metadata={"route": "/calendar", "year": year, "month": month},
        user_id=str(user_id),
        request_id=request_id,
    ):
        tracker = CompletionTracker(user_id, SqlHistoryWriter(db))
        for program_type in [type] if type is not None else list(ProgramType):
            tracker.seed(load_history_range(db, user_id, first, last, program_type), program_type=program_type)
        tracker.restore_pending(PendingHistoryQueue(pending_store).load(user_id))
        today = date.today()
        days = []
        for day in tracker.summaries_between(first, last, type):
            tile = tracker.calendar_tile(day, today=today, program_type=type)
            days.append(
                CalendarDay(
                    date=day,
                    completed=tile.summary.completed,
                    total=tile.summary.total,
                    state=tile.state.value,
                    style=tile.style,
                    badge=tile.badge,
                )
            )

    return CalendarResponse(user_id=user_id, year=year, month=month, days=days, request_id=request_id or "")
