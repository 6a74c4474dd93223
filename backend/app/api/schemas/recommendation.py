"""Schemas for recommendation resolution endpoints."""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.services.weekdays import Weekday


class ProgramType(str, Enum):
    WORKOUT = "workout"
    DIET = "diet"

    @property
    def cache_field(self) -> str:
        """Sub-field of a cached recommendation entry holding this program."""
        return "workouts" if self is ProgramType.WORKOUT else "diets"


class Tier(str, Enum):
    EXPLICIT = "explicit"
    CACHE = "cache"
    BACKEND = "backend"
    NONE = "none"


class RecommendationItem(BaseModel):
    """One workout or meal entry; domain attributes (duration, calories, sets...) ride along as extras."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    description: str = ""
    category: Optional[str] = None


WeeklyProgram = Dict[str, List[RecommendationItem]]


class RecommendationCreateRequest(BaseModel):
    user_id: UUID
    program_type: ProgramType
    payload: Any


class RecommendationCreateResponse(BaseModel):
    id: UUID
    user_id: UUID
    program_type: ProgramType
    created_at: Optional[datetime]
    program: WeeklyProgram
    request_id: str


class ResolveRequest(BaseModel):
    user_id: UUID
    program_type: ProgramType
    # Payload handed over right after generation; skips cache and backend lookups.
    payload: Optional[Any] = None


class WeeklyRecommendationResponse(BaseModel):
    user_id: UUID
    program_type: ProgramType
    origin: Tier
    program: WeeklyProgram
    metadata: Dict[str, Any]
    message: Optional[str] = None
    request_id: str


class DayRecommendationResponse(BaseModel):
    user_id: UUID
    program_type: ProgramType
    date: Optional[date]
    weekday: Weekday
    origin: Tier
    active: bool
    items: List[RecommendationItem]
    survey_days: List[Weekday]
    message: Optional[str] = None
    request_id: str
