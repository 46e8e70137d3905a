"""
Stats router.

GET /stats        — Today / this week / this month for the caller
GET /stats/trend  — Chronological chart series over the stats window
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from diary.core.auth import get_current_profile
from diary.db.base import get_db
from diary.schemas.common import ERROR_RESPONSES, RoleTotalsOut
from diary.schemas.stats import ScopeStatsResponse, StatsResponse, TrendPointResponse, TrendResponse
from diary.services.aggregation import ScopeStats
from diary.services.calendar import today_info
from diary.services.days import recent_days
from diary.services.identity import Profile
from diary.services.stats import compute_stats, trend_series

router = APIRouter(prefix="/stats", tags=["stats"], responses=ERROR_RESPONSES)


def scope_stats_to_response(stats: ScopeStats) -> ScopeStatsResponse:
    return ScopeStatsResponse(
        scope=stats.scope.value,
        key=stats.key,
        days=stats.days,
        score_sum=stats.score_sum,
        score_count=stats.score_count,
        average=stats.average,
        by_role={role: RoleTotalsOut(**t.to_dict()) for role, t in stats.by_role.items()},
        thanks_total=stats.thanks_total,
        thanks_sent=stats.thanks_sent,
        thanks_received=stats.thanks_received,
        degraded_days=list(stats.degraded_days),
    )


@router.get("", response_model=StatsResponse, summary="Day / week / month stats")
def get_stats(
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    """
    Rolled up from the most recent days. `average` is null when nothing was
    scored in a scope. `thanks_sent` / `thanks_received` are from the caller's
    point of view.
    """
    snapshot = compute_stats(db, profile.role)
    return StatsResponse(
        role=profile.role,
        today_key=snapshot.today.day_key,
        is_late_night=snapshot.today.is_late_night,
        window_size=snapshot.window_size,
        day=scope_stats_to_response(snapshot.day),
        week=scope_stats_to_response(snapshot.week),
        month=scope_stats_to_response(snapshot.month),
    )


@router.get("/trend", response_model=TrendResponse, summary="Trend chart series")
def get_trend(
    limit: Optional[int] = Query(default=None, ge=1, le=366),
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    records = recent_days(db, until=today_info().day_key, limit=limit)
    return TrendResponse(
        points=[
            TrendPointResponse(day_key=p.day_key, label=p.label, average=p.average, thanks=p.thanks)
            for p in trend_series(records)
        ]
    )
