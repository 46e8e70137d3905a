"""
Weekly comment schemas.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from diary.models.role import Role
from diary.schemas.stats import ScopeStatsResponse


class WeeklyCommentRequest(BaseModel):
    text: str = Field(min_length=1, description="Generated text; truncated to the configured budget.")


class WeeklyCommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    week_key: str
    text: str
    truncated: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class NoteExcerptResponse(BaseModel):
    day_key: str
    role: Role
    score: Optional[int] = None
    note: str


class WeeklySummaryInputResponse(BaseModel):
    week_key: str
    first_day: date
    last_day: date
    stats: ScopeStatsResponse
    previous_weeks: list[ScopeStatsResponse]
    notes: list[NoteExcerptResponse]
    prompt: str
