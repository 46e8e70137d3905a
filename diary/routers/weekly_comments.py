"""
Weekly comments router.

GET /weekly-comments                     — Most recent comments, newest first
GET /weekly-comments/{week_key}          — One week's comment
GET /weekly-comments/{week_key}/input    — Payload + prompt for the text generator
PUT /weekly-comments/{week_key}          — Store the generated text (truncated)
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from diary.core.auth import get_current_profile
from diary.db.base import get_db
from diary.routers.stats import scope_stats_to_response
from diary.schemas.common import ERROR_RESPONSES
from diary.schemas.weekly import (
    NoteExcerptResponse,
    WeeklyCommentRequest,
    WeeklyCommentResponse,
    WeeklySummaryInputResponse,
)
from diary.services.identity import Profile
from diary.services.weekly_summary import (
    build_prompt,
    build_weekly_summary_input,
    get_weekly_comment,
    list_weekly_comments,
    save_weekly_comment,
)

router = APIRouter(prefix="/weekly-comments", tags=["weekly"], responses=ERROR_RESPONSES)


@router.get("", response_model=list[WeeklyCommentResponse], summary="Recent weekly comments")
def list_comments(
    limit: Optional[int] = Query(default=None, ge=1, le=52),
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    return list_weekly_comments(db, limit=limit)


@router.get("/{week_key}", response_model=WeeklyCommentResponse, summary="One week's comment")
def get_comment(
    week_key: str,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    return get_weekly_comment(db, week_key)


@router.get(
    "/{week_key}/input",
    response_model=WeeklySummaryInputResponse,
    summary="Weekly summary payload",
)
def get_input(
    week_key: str,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    """
    The week's stats, the previous weeks for comparison and the participants'
    notes, plus a ready-made prompt. Nothing is sent to the generator here.
    """
    summary_input = build_weekly_summary_input(db, week_key, acting_role=profile.role)
    return WeeklySummaryInputResponse(
        week_key=summary_input.week_key,
        first_day=summary_input.first_day,
        last_day=summary_input.last_day,
        stats=scope_stats_to_response(summary_input.stats),
        previous_weeks=[scope_stats_to_response(s) for s in summary_input.previous_weeks],
        notes=[
            NoteExcerptResponse(day_key=n.day_key, role=n.role, score=n.score, note=n.note)
            for n in summary_input.notes
        ],
        prompt=build_prompt(summary_input),
    )


@router.put("/{week_key}", response_model=WeeklyCommentResponse, summary="Store a weekly comment")
def put_comment(
    week_key: str,
    payload: WeeklyCommentRequest,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    return save_weekly_comment(db, week_key, payload.text)
