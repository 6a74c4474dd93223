"""Survey day selection API routes."""
from __future__ import annotations

from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.api.schemas.survey import SurveyCreateRequest, SurveyResponse
from app.core.config import settings
from app.db.deps import get_db
from app.db.models.survey import Survey
from app.db.models.user import User
from app.observability.metrics import log_metric
from app.observability.tracing import trace
from app.services.survey_service import latest_survey, submit_survey
from app.services.weekdays import UnrecognizedDay, translate_days

router = APIRouter()


def _serialize(survey: Survey, request_id: str) -> SurveyResponse:
    return SurveyResponse(
        id=survey.id,
        user_id=survey.user_id,
        selected_days=translate_days(survey.selected_days or []),
        created_at=survey.created_at,
        request_id=request_id,
    )


@router.post("/surveys", response_model=SurveyResponse, status_code=status.HTTP_201_CREATED, tags=["surveys"])
def create_survey(
    payload: SurveyCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> SurveyResponse:
    """Store a survey submission's training days."""
    if not db.get(User, payload.user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/surveys",
        "user_id": str(payload.user_id),
        "day_count": len(payload.selected_days or []),
        "request_id": request_id,
    }

    try:
        with trace(
            "survey.submit",
            metadata=metadata,
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            survey = submit_survey(
                db,
                payload.user_id,
                payload.selected_days,
                payload.answers,
                strict=settings.strict_survey_days,
            )
            db.commit()
            db.refresh(survey)
    except UnrecognizedDay as exc:
        db.rollback()
        log_metric("survey.submit.success", 0, metadata={"user_id": str(payload.user_id), "reason": "unknown_day"})
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except Exception:
        db.rollback()
        raise

    log_metric("survey.submit.success", 1, metadata={"user_id": str(payload.user_id)})
    return _serialize(survey, request_id or "")


@router.get("/surveys/latest", response_model=SurveyResponse, tags=["surveys"])
def get_latest_survey(
    http_request: Request,
    user_id: UUID = Query(..., description="User who submitted the survey"),
    db: Session = Depends(get_db),
) -> SurveyResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("survey.latest", metadata={"route": "/surveys/latest"}, user_id=str(user_id), request_id=request_id):
        survey = latest_survey(db, user_id)
    if survey is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No survey submitted")
    return _serialize(survey, request_id or "")
