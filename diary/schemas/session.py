"""
Session schemas.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from diary.models.role import Role


class SessionResponse(BaseModel):
    id: str
    email: str
    role: Role
    display_name: str
    today_key: str
    is_late_night: bool
    active_day_key: Optional[str] = None


class ActiveDayRequest(BaseModel):
    day_key: str = Field(examples=["2024-03-09"])


class NotificationResponse(BaseModel):
    topic: str
    payload: dict[str, Any]
    published_at: datetime


class EventsResponse(BaseModel):
    events: list[NotificationResponse]
