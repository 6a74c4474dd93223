"""Recommendation storage and resolution API routes."""
from __future__ import annotations

from datetime import date
import logging
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.schemas.recommendation import (
    DayRecommendationResponse,
    ProgramType,
    RecommendationCreateRequest,
    RecommendationCreateResponse,
    ResolveRequest,
    Tier,
    WeeklyRecommendationResponse,
)
from app.db.deps import get_db
from app.db.models.user import User
from app.observability.metrics import log_metric
from app.observability.tracing import trace
from app.services.cache.base import CacheStore
from app.services.cache.factory import get_cache_store
from app.services.day_selection import empty_day_message, is_active_day
from app.services.cache_writer import CacheWriter
from app.services.recommendation_resolver import (
    NO_RECOMMENDATION_MESSAGE,
    CancellationToken,
    RecommendationResolver,
    Resolution,
    ResolutionCancelled,
    split_record,
)
from app.services.recommendation_store import SqlRecommendationSource, record_as_entry, store_recommendation
from app.services.survey_service import latest_survey_days
from app.services.weekdays import WEEKDAYS, UnrecognizedDay, parse_weekday, weekday_for_date

logger = logging.getLogger(__name__)

router = APIRouter()

# Non-standard status used when the caller disconnected mid-request.
CLIENT_CLOSED_REQUEST = 499


def _require_user(db: Session, user_id: UUID) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _build_resolver(db: Session, cache: CacheStore) -> RecommendationResolver:
    return RecommendationResolver(cache, SqlRecommendationSource(db))


async def _resolve_for_request(
    db: Session,
    cache: CacheStore,
    http_request: Request,
    user_id: UUID,
    program_type: ProgramType,
    explicit_payload: Any = None,
) -> Resolution:
    token = CancellationToken(http_request.is_disconnected)
    try:
        return await _build_resolver(db, cache).resolve(
            user_id,
            program_type,
            explicit_payload,
            cancel_token=token,
        )
    except ResolutionCancelled as exc:
        logger.info("Client disconnected while resolving %s program for user=%s", program_type.value, user_id)
        raise HTTPException(status_code=CLIENT_CLOSED_REQUEST, detail="Client closed request") from exc


def _weekly_response(
    user_id: UUID,
    program_type: ProgramType,
    resolution: Resolution,
    request_id: str,
) -> WeeklyRecommendationResponse:
    return WeeklyRecommendationResponse(
        user_id=user_id,
        program_type=program_type,
        origin=resolution.origin,
        program=resolution.program,
        metadata={key: value for key, value in resolution.metadata.items() if key != "message"},
        message=NO_RECOMMENDATION_MESSAGE if resolution.origin is Tier.NONE else None,
        request_id=request_id,
    )


@router.post(
    "/recommendations",
    response_model=RecommendationCreateResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["recommendations"],
)
def create_recommendation(
    payload: RecommendationCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache_store),
) -> RecommendationCreateResponse:
    """Store a generated payload as the newest record and refresh the user's cached program."""
    _require_user(db, payload.user_id)
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/recommendations",
        "user_id": str(payload.user_id),
        "program_type": payload.program_type.value,
        "request_id": request_id,
    }

    try:
        with trace(
            "recommendation.store",
            metadata=metadata,
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            record = store_recommendation(db, payload.user_id, payload.program_type, payload.payload)
            db.commit()
            db.refresh(record)
    except Exception:
        db.rollback()
        log_metric("recommendation.store.success", 0, metadata={"user_id": str(payload.user_id)})
        raise

    program, record_metadata = split_record(record_as_entry(record, payload.program_type), payload.program_type)
    CacheWriter(cache).persist(payload.user_id, payload.program_type, program, record_metadata)

    log_metric(
        "recommendation.store.success",
        1,
        metadata={"user_id": str(payload.user_id), "program_type": payload.program_type.value},
    )
    return RecommendationCreateResponse(
        id=record.id,
        user_id=record.user_id,
        program_type=payload.program_type,
        created_at=record.created_at,
        program=program,
        request_id=request_id or "",
    )


@router.post(
    "/recommendations/resolve",
    response_model=WeeklyRecommendationResponse,
    tags=["recommendations"],
)
async def resolve_recommendation(
    payload: ResolveRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache_store),
) -> WeeklyRecommendationResponse:
    """Resolve a week, preferring a payload handed over right after generation."""
    await run_in_threadpool(_require_user, db, payload.user_id)
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/recommendations/resolve",
        "user_id": str(payload.user_id),
        "program_type": payload.program_type.value,
        "explicit": payload.payload is not None,
        "request_id": request_id,
    }

    with trace(
        "recommendation.resolve",
        metadata=metadata,
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        resolution = await _resolve_for_request(
            db,
            cache,
            http_request,
            payload.user_id,
            payload.program_type,
            payload.payload,
        )

    return _weekly_response(payload.user_id, payload.program_type, resolution, request_id or "")


@router.get(
    "/recommendations/{program_type}/week",
    response_model=WeeklyRecommendationResponse,
    tags=["recommendations"],
)
async def get_weekly_recommendation(
    program_type: ProgramType,
    http_request: Request,
    user_id: UUID = Query(..., description="User owning the recommendations"),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache_store),
) -> WeeklyRecommendationResponse:
    """Resolve the full week from cache or the latest stored record."""
    await run_in_threadpool(_require_user, db, user_id)
    request_id = getattr(http_request.state, "request_id", None)

    with trace(
        "recommendation.week",
        metadata={"route": f"/recommendations/{program_type.value}/week", "program_type": program_type.value},
        user_id=str(user_id),
        request_id=request_id,
    ):
        resolution = await _resolve_for_request(db, cache, http_request, user_id, program_type)

    return _weekly_response(user_id, program_type, resolution, request_id or "")


@router.get(
    "/recommendations/{program_type}/day",
    response_model=DayRecommendationResponse,
    tags=["recommendations"],
)
async def get_day_recommendation(
    program_type: ProgramType,
    http_request: Request,
    user_id: UUID = Query(..., description="User owning the recommendations"),
    on: Optional[date] = Query(default=None, alias="date"),
    weekday: Optional[str] = Query(default=None, description="Day name (Korean or English); overrides date"),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache_store),
) -> DayRecommendationResponse:
    """Items for one day, with the survey day filter applied."""
    await run_in_threadpool(_require_user, db, user_id)
    request_id = getattr(http_request.state, "request_id", None)

    target_date: Optional[date] = None
    if weekday is not None:
        try:
            day = parse_weekday(weekday)
        except UnrecognizedDay as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    else:
        target_date = on or date.today()
        day = weekday_for_date(target_date)

    metadata: Dict[str, Any] = {
        "route": f"/recommendations/{program_type.value}/day",
        "program_type": program_type.value,
        "weekday": day.value,
        "date": target_date.isoformat() if target_date else None,
    }
    with trace(
        "recommendation.day",
        metadata=metadata,
        user_id=str(user_id),
        request_id=request_id,
    ):
        resolution = await _resolve_for_request(db, cache, http_request, user_id, program_type)
        survey_days = await run_in_threadpool(latest_survey_days, db, user_id)

    items = resolution.program.get(day.value, [])
    active = is_active_day(day, survey_days, resolution.program)
    if resolution.origin is Tier.NONE:
        message: Optional[str] = NO_RECOMMENDATION_MESSAGE
    elif not items:
        message = empty_day_message(day, survey_days)
    else:
        message = None

    log_metric(
        "recommendation.day.items",
        len(items),
        metadata={"user_id": str(user_id), "program_type": program_type.value, "active": active},
    )
    return DayRecommendationResponse(
        user_id=user_id,
        program_type=program_type,
        date=target_date,
        weekday=day,
        origin=resolution.origin,
        active=active,
        items=items,
        survey_days=[candidate for candidate in WEEKDAYS if candidate in survey_days],
        message=message,
        request_id=request_id or "",
    )
