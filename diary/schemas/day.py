"""
Day thread schemas.

GET  /days                   → DayHistoryResponse
GET  /days/{day_key}         → DayDetailResponse
PUT  /days/{day_key}/entry   → EntryUpsertRequest → DayDetailResponse
POST /days/{day_key}/refold  → DayResponse
POST /days/{day_key}/thanks  → DayResponse
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from diary.models.role import Role
from diary.schemas.common import RoleTotalsOut
from diary.services.days import MAX_SCORE, MIN_SCORE


class EntryUpsertRequest(BaseModel):
    """The caller's own entry for the day. Resubmitting overwrites it."""
    score: int = Field(
        ge=MIN_SCORE, le=MAX_SCORE,
        description="4 = good, 3 = fairly good, 2 = fairly bad, 1 = bad.",
        examples=[3],
    )
    note: str = Field(default="", max_length=4000)

    @field_validator("note")
    @classmethod
    def strip_note(cls, v: str) -> str:
        return v.strip()


class EntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    role: Role
    display_name: str
    score: Optional[int] = None
    note: str = ""
    updated_at: Optional[datetime] = None


class DayResponse(BaseModel):
    day_key: str
    display_label: str
    week_key: str
    time_zone: str
    score_sum: float
    score_count: int
    score_average: Optional[float] = None
    score_breakdown: Optional[dict[Role, RoleTotalsOut]] = Field(
        default=None, description="null on days written before per-role tracking."
    )
    thanks_total: int
    thanks_breakdown: dict[Role, int]
    updated_at: Optional[datetime] = None
    last_aggregate_at: Optional[datetime] = None


class DayDetailResponse(DayResponse):
    entries: list[EntryResponse] = Field(default_factory=list)


class DayHistoryResponse(BaseModel):
    items: list[DayDetailResponse]
    has_more: bool
    next_before: Optional[str] = Field(
        default=None, description="Pass as `before` to fetch the next page."
    )
