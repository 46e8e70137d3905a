"""
Calendar router.

GET /calendar/today             — Today's keys (late-night cutoff applied)
GET /calendar/resolve           — Keys for an arbitrary aware instant
GET /calendar/weeks/{week_key}  — First / last day of a week bucket
"""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from diary.core.auth import get_current_profile
from diary.schemas.calendar import DateInfoResponse, WeekBoundsResponse
from diary.schemas.common import ERROR_RESPONSES
from diary.services.calendar import (
    CalendarConfig,
    DateInfo,
    day_keys_between,
    resolve_date,
    today_info,
    week_bounds,
)

router = APIRouter(
    prefix="/calendar",
    tags=["calendar"],
    dependencies=[Depends(get_current_profile)],
    responses=ERROR_RESPONSES,
)


def date_info_to_response(info: DateInfo) -> DateInfoResponse:
    return DateInfoResponse(
        day_key=info.day_key,
        display_label=info.display_label,
        week_key=info.week_key,
        month_key=info.month_key,
        is_late_night=info.is_late_night,
        local_time=info.local.isoformat(),
        time_zone=CalendarConfig.from_settings().time_zone,
    )


@router.get("/today", response_model=DateInfoResponse, summary="Today's day / week keys")
def get_today():
    return date_info_to_response(today_info())


@router.get("/resolve", response_model=DateInfoResponse, summary="Resolve an instant")
def resolve(
    at: datetime = Query(description="ISO 8601 instant with an offset, e.g. 2024-03-10T00:30:00+09:00"),
    respect_cutoff: bool = Query(default=True),
):
    """
    Bucket an instant into its diary day. With `respect_cutoff`, instants before
    the cutoff hour (local) belong to the previous day. Naive instants are
    rejected with `INVALID_INSTANT`.
    """
    return date_info_to_response(resolve_date(at, respect_cutoff=respect_cutoff))


@router.get("/weeks/{week_key}", response_model=WeekBoundsResponse, summary="Week bucket bounds")
def get_week(week_key: str):
    first, last = week_bounds(week_key)
    return WeekBoundsResponse(
        week_key=week_key,
        first_day=first,
        last_day=last,
        day_keys=day_keys_between(first, last),
    )
