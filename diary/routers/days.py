"""
Day threads router.

GET  /days                   — History, newest first (cursor pagination)
GET  /days/{day_key}         — Open a day (created if absent) with its entries
PUT  /days/{day_key}/entry   — Write the caller's entry; totals are refolded
POST /days/{day_key}/refold  — Recompute a day's totals from its entries
POST /days/{day_key}/thanks  — Send one thanks on that day
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from diary.core.auth import get_current_profile
from diary.db.base import get_db
from diary.models.day import DayRecord
from diary.models.entry import DayEntry
from diary.schemas.common import ERROR_RESPONSES, RoleTotalsOut
from diary.schemas.day import (
    DayDetailResponse,
    DayHistoryResponse,
    DayResponse,
    EntryResponse,
    EntryUpsertRequest,
)
from diary.services.aggregation import decode_breakdown, increment_thanks, refold_day
from diary.services.days import ensure_day, get_day, get_entries, list_history, upsert_entry
from diary.services.identity import Profile, display_name_for_role

router = APIRouter(prefix="/days", tags=["days"], responses=ERROR_RESPONSES)


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _day_fields(day: DayRecord) -> dict:
    breakdown = decode_breakdown(day.score_breakdown)
    return dict(
        day_key=day.day_key,
        display_label=day.display_label,
        week_key=day.week_key,
        time_zone=day.time_zone,
        score_sum=day.score_sum or 0,
        score_count=day.score_count or 0,
        score_average=day.score_average,
        score_breakdown=(
            {role: RoleTotalsOut(**totals.to_dict()) for role, totals in breakdown.items()}
            if breakdown is not None else None
        ),
        thanks_total=day.thanks_total or 0,
        thanks_breakdown=day.thanks_breakdown,
        updated_at=day.updated_at,
        last_aggregate_at=day.last_aggregate_at,
    )


def _entry_to_response(entry: DayEntry) -> EntryResponse:
    return EntryResponse(
        role=entry.role,
        display_name=display_name_for_role(entry.role),
        score=entry.score,
        note=entry.note or "",
        updated_at=entry.updated_at,
    )


def day_to_response(day: DayRecord) -> DayResponse:
    return DayResponse(**_day_fields(day))


def day_to_detail(day: DayRecord, entries: list[DayEntry]) -> DayDetailResponse:
    return DayDetailResponse(**_day_fields(day), entries=[_entry_to_response(e) for e in entries])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("", response_model=DayHistoryResponse, summary="Day history (newest first)")
def history(
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    before: Optional[str] = Query(default=None, description="Exclusive day_key cursor."),
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    days, has_more = list_history(db, limit=limit, before=before)
    items = [day_to_detail(d, get_entries(db, d.day_key)) for d in days]
    return DayHistoryResponse(
        items=items,
        has_more=has_more,
        next_before=days[-1].day_key if has_more and days else None,
    )


@router.get("/{day_key}", response_model=DayDetailResponse, summary="Open a day thread")
def open_day(
    day_key: str,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    day = ensure_day(db, day_key)
    return day_to_detail(day, get_entries(db, day_key))


@router.put("/{day_key}/entry", response_model=DayDetailResponse, summary="Write the caller's entry")
def put_entry(
    day_key: str,
    payload: EntryUpsertRequest,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    """
    Overwrites the caller's entry for the day (last write wins) and refolds the
    day's score totals from all current entries.
    """
    result = upsert_entry(db, day_key, profile, score=payload.score, note=payload.note)
    return day_to_detail(result.day, get_entries(db, day_key))


@router.post("/{day_key}/refold", response_model=DayResponse, summary="Recompute day totals")
def refold(
    day_key: str,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    return day_to_response(refold_day(db, day_key))


@router.post("/{day_key}/thanks", response_model=DayResponse, summary="Send one thanks")
def thanks(
    day_key: str,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    """
    Atomically adds one thanks from the caller. The day must already exist
    (`DAY_NOT_FOUND` otherwise); concurrent increments are never lost.
    """
    return day_to_response(increment_thanks(db, day_key, profile.role))
