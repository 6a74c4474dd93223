"""Schemas for survey day selection endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel

from app.services.weekdays import Weekday


class SurveyCreateRequest(BaseModel):
    user_id: UUID
    # Korean or English names; read from the answers when omitted.
    selected_days: Optional[List[str]] = None
    answers: Optional[Dict[str, Any]] = None


class SurveyResponse(BaseModel):
    id: UUID
    user_id: UUID
    selected_days: List[Weekday]
    created_at: Optional[datetime]
    request_id: str
