"""
Stats schemas.

GET /stats        → StatsResponse
GET /stats/trend  → TrendResponse
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from diary.models.role import Role
from diary.schemas.common import RoleTotalsOut


class ScopeStatsResponse(BaseModel):
    scope: str = Field(description='"day", "week" or "month".')
    key: str
    days: int
    score_sum: float
    score_count: int
    average: Optional[float] = Field(default=None, description="null when nothing was scored.")
    by_role: dict[Role, RoleTotalsOut]
    thanks_total: int
    thanks_sent: int
    thanks_received: int
    degraded_days: list[str] = Field(
        default_factory=list,
        description="Days whose per-role breakdown could not be rebuilt.",
    )


class StatsResponse(BaseModel):
    role: Role
    today_key: str
    is_late_night: bool
    window_size: int
    day: ScopeStatsResponse
    week: ScopeStatsResponse
    month: ScopeStatsResponse


class TrendPointResponse(BaseModel):
    day_key: str
    label: str
    average: Optional[float] = None
    thanks: int


class TrendResponse(BaseModel):
    points: list[TrendPointResponse]
