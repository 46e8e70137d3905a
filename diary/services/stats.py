"""
Stats service: today / this week / this month for one participant, plus the
trend series behind the chart.

All three scopes are rolled up from the same bounded window of recent days
(settings.STATS_WINDOW_DAYS, newest first, ending at today's key).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from diary.models.day import DayRecord
from diary.models.role import Role
from diary.services.aggregation import Scope, ScopeStats, get_breakdown_cache, roll_up
from diary.services.calendar import CalendarConfig, DateInfo, today_info
from diary.services.days import recent_days


@dataclass
class StatsSnapshot:
    today: DateInfo
    day: ScopeStats
    week: ScopeStats
    month: ScopeStats
    window_size: int


@dataclass
class TrendPoint:
    day_key: str
    label: str
    average: Optional[float]
    thanks: int


def compute_stats(
    db: Session,
    role: Role,
    now: Optional[datetime] = None,
    window: Optional[int] = None,
    config: Optional[CalendarConfig] = None,
) -> StatsSnapshot:
    today = today_info(now, config)
    records = recent_days(db, until=today.day_key, limit=window)
    resolver = get_breakdown_cache().resolver(db)
    return StatsSnapshot(
        today=today,
        day=roll_up(records, Scope.day, today.day_key, role, resolver),
        week=roll_up(records, Scope.week, today.week_key, role, resolver),
        month=roll_up(records, Scope.month, today.month_key, role, resolver),
        window_size=len(records),
    )


def trend_series(records: list[DayRecord]) -> list[TrendPoint]:
    """Chronological points; days without scores carry average=None."""
    ordered = sorted(records, key=lambda r: r.day_key)
    return [
        TrendPoint(
            day_key=r.day_key,
            label=r.display_label or r.day_key,
            average=round(r.score_sum / r.score_count, 2) if r.score_count else None,
            thanks=r.thanks_total or 0,
        )
        for r in ordered
    ]
