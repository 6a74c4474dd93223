"""Survey day selections."""
from __future__ import annotations

from typing import Any, Dict, FrozenSet, Iterable, Optional
from uuid import UUID

from sqlalchemy import desc
from sqlalchemy.orm import Session

from app.db.models.survey import Survey
from app.services.day_selection import survey_active_days
from app.services.weekdays import WEEKDAYS, Weekday, translate_days


def submit_survey(
    db: Session,
    user_id: UUID,
    selected_days: Optional[Iterable[object]],
    answers: Optional[Dict[str, Any]] = None,
    *,
    strict: bool = False,
) -> Survey:
    """
    Store a submission with its days translated to canonical names. Caller commits.

    When no explicit day list is given the days are read from the answers.
    """
    if selected_days is None:
        days = survey_active_days(answers, strict=strict)
    else:
        days = frozenset(translate_days(selected_days, strict=strict))
    ordered = [day.value for day in WEEKDAYS if day in days]
    survey = Survey(user_id=user_id, selected_days=ordered, answers=answers)
    db.add(survey)
    db.flush()
    return survey


def latest_survey(db: Session, user_id: UUID) -> Optional[Survey]:
    return (
        db.query(Survey)
        .filter(Survey.user_id == user_id)
        .order_by(desc(Survey.created_at))
        .first()
    )


def latest_survey_days(db: Session, user_id: UUID) -> FrozenSet[Weekday]:
    """Days of the newest submission; empty when the user never submitted one."""
    survey = latest_survey(db, user_id)
    if survey is None:
        return frozenset()
    return frozenset(translate_days(survey.selected_days or []))
