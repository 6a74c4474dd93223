"""Schemas for user registration."""
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class UserCreateRequest(BaseModel):
    user_id: Optional[UUID] = None
    display_name: Optional[str] = Field(default=None, max_length=120)


class UserResponse(BaseModel):
    id: UUID
    display_name: Optional[str]
    created_at: Optional[datetime]
    request_id: str
