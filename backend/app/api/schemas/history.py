"""Schemas for completion history endpoints."""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.api.schemas.recommendation import ProgramType


class HistoryToggleRequest(BaseModel):
    user_id: UUID
    date: date
    type: ProgramType
    item_name: str = Field(..., min_length=1, max_length=200)
    completed: bool
    item_id: Optional[str] = None
    item_details: Optional[Dict[str, Any]] = None

    @field_validator("item_name")
    @classmethod
    def trim_item_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("item_name must not be blank")
        return cleaned


class DaySummary(BaseModel):
    completed: int
    total: int
    state: str


class HistoryToggleResponse(BaseModel):
    user_id: UUID
    date: date
    type: ProgramType
    item_name: str
    completed: bool
    item_id: Optional[str] = None
    sync_status: str
    summary: DaySummary
    request_id: str


class HistoryRangeResponse(BaseModel):
    user_id: UUID
    start: date
    end: date
    histories: Dict[date, Dict[str, bool]]
    request_id: str


class CalendarDay(BaseModel):
    date: date
    completed: int
    total: int
    state: str
    style: str
    badge: Optional[str] = None


class CalendarResponse(BaseModel):
    user_id: UUID
    year: int
    month: int
    days: List[CalendarDay]
    request_id: str


class HistoryRetryRequest(BaseModel):
    user_id: UUID


class HistoryRetryResponse(BaseModel):
    user_id: UUID
    retried: int
    synced: int
    pending: int
    request_id: str
