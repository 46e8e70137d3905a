"""
Weekly reflection support.

The scheduled weekly job asks this module for the week's payload, sends the
prompt to an external text generator, and hands the returned text back to
save_weekly_comment(). This module never calls the generator itself.

Public API
----------
build_weekly_summary_input(db, week_key, acting_role) -> WeeklySummaryInput
build_prompt(summary_input)                -> str
finalize_comment(text, max_chars)          -> (text, truncated)
save_weekly_comment(db, week_key, text)    -> WeeklyComment   (upsert)
get_weekly_comment(db, week_key)           -> WeeklyComment
list_weekly_comments(db, limit)            -> list[WeeklyComment]  newest first
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from diary.core.config import settings
from diary.core.errors import InvalidWeekKeyError, WeeklyCommentNotFoundError
from diary.db.base import transient_store_errors
from diary.models.entry import DayEntry
from diary.models.role import Role, ROLES
from diary.models.weekly_comment import WeeklyComment
from diary.services.aggregation import Scope, ScopeStats, get_breakdown_cache, roll_up
from diary.services.calendar import parse_week_key, previous_week_key, week_bounds
from diary.services.days import SCORE_OPTIONS, days_between
from diary.services.identity import display_name_for_role
from diary.services.notifications import WEEKLY_COMMENTS_TOPIC, ChangeHub, get_hub

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "…"


@dataclass
class NoteExcerpt:
    day_key: str
    role: Role
    score: Optional[int]
    note: str


@dataclass
class WeeklySummaryInput:
    week_key: str
    first_day: date
    last_day: date
    stats: ScopeStats
    previous_weeks: list[ScopeStats] = field(default_factory=list)
    notes: list[NoteExcerpt] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def truncate_text(text: str, max_chars: int, marker: str = TRUNCATION_MARKER) -> tuple[str, bool]:
    """Hard-cut `text` so the result, marker included, fits in max_chars."""
    if max_chars < len(marker):
        raise ValueError("max_chars must leave room for the truncation marker")
    if len(text) <= max_chars:
        return text, False
    return text[: max_chars - len(marker)] + marker, True


def finalize_comment(text: str, max_chars: Optional[int] = None) -> tuple[str, bool]:
    budget = settings.WEEKLY_COMMENT_MAX_CHARS if max_chars is None else max_chars
    return truncate_text((text or "").strip(), budget)


def _fmt_avg(value: Optional[float]) -> str:
    return f"{value:.2f}" if value is not None else "no data"


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------

def _week_stats(db: Session, week_key: str, acting_role: Role) -> ScopeStats:
    first, last = week_bounds(week_key)
    records = days_between(db, first.isoformat(), last.isoformat())
    return roll_up(
        records, Scope.week, week_key, acting_role,
        get_breakdown_cache().resolver(db),
    )


def build_weekly_summary_input(
    db: Session,
    week_key: str,
    acting_role: Role = Role.master,
    lookback: Optional[int] = None,
    note_max_chars: Optional[int] = None,
) -> WeeklySummaryInput:
    """
    Payload for one week. `acting_role` decides which side thanks_sent /
    thanks_received are reported from.
    """
    first, last = week_bounds(week_key)
    stats = _week_stats(db, week_key, acting_role)

    previous: list[ScopeStats] = []
    key = week_key
    for _ in range(settings.WEEKLY_SUMMARY_LOOKBACK_WEEKS if lookback is None else lookback):
        key = previous_week_key(key)
        try:
            previous.append(_week_stats(db, key, acting_role))
        except InvalidWeekKeyError:
            # ran off the start of the supported calendar
            break

    note_budget = settings.WEEKLY_NOTE_MAX_CHARS if note_max_chars is None else note_max_chars
    entries = (
        db.query(DayEntry)
        .filter(DayEntry.day_key >= first.isoformat(), DayEntry.day_key <= last.isoformat())
        .order_by(DayEntry.day_key.asc(), DayEntry.role.asc())
        .all()
    )
    notes = []
    for e in entries:
        text = (e.note or "").strip()
        if not text:
            continue
        excerpt, _ = truncate_text(text, note_budget)
        notes.append(NoteExcerpt(day_key=e.day_key, role=Role(e.role), score=e.score, note=excerpt))

    return WeeklySummaryInput(
        week_key=week_key,
        first_day=first,
        last_day=last,
        stats=stats,
        previous_weeks=previous,
        notes=notes,
    )


def build_prompt(summary_input: WeeklySummaryInput, max_chars: Optional[int] = None) -> str:
    s = summary_input.stats
    budget = settings.WEEKLY_COMMENT_MAX_CHARS if max_chars is None else max_chars
    scale = ", ".join(f"{k} = {v}" for k, v in sorted(SCORE_OPTIONS.items(), reverse=True))
    lines = [
        "You are writing a short, warm weekly reflection for a married couple's diary.",
        f"Week {summary_input.week_key} ({summary_input.first_day} to {summary_input.last_day}).",
        f"Each partner rates their own day on a 1-4 scale ({scale}).",
        "",
        "This week:",
        f"- Combined average score: {_fmt_avg(s.average)} over {s.score_count} entries",
    ]
    for role in ROLES:
        name = display_name_for_role(role)
        lines.append(
            f"- {name}: average {_fmt_avg(s.by_role[role].average)}"
            f" ({s.by_role[role].count} entries), thanks given {s.thanks_by_role[role]}"
        )
    lines.append(f"- Thanks exchanged in total: {s.thanks_total}")

    if summary_input.previous_weeks:
        lines += ["", "Previous weeks (most recent first):"]
        for prev in summary_input.previous_weeks:
            lines.append(
                f"- {prev.key}: average {_fmt_avg(prev.average)}, thanks {prev.thanks_total}"
            )

    if summary_input.notes:
        lines += ["", "Notes:"]
        for n in summary_input.notes:
            score = SCORE_OPTIONS.get(n.score, "-") if n.score is not None else "-"
            lines.append(f"- {n.day_key} {display_name_for_role(n.role)} ({score}): {n.note}")

    lines += [
        "",
        f"Reply in at most {budget} characters. Compare with previous weeks, "
        "name one thing that went well and one small suggestion.",
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

def save_weekly_comment(
    db: Session,
    week_key: str,
    text: str,
    max_chars: Optional[int] = None,
    hub: Optional[ChangeHub] = None,
) -> WeeklyComment:
    """Truncate the generated text and upsert it for the week."""
    parse_week_key(week_key)
    final, truncated = finalize_comment(text, max_chars)
    with transient_store_errors(db, "save_weekly_comment"):
        comment = db.query(WeeklyComment).filter(WeeklyComment.week_key == week_key).first()
        if comment is None:
            comment = WeeklyComment(week_key=week_key, text=final, truncated=truncated)
            db.add(comment)
        else:
            comment.text = final
            comment.truncated = truncated
            comment.updated_at = datetime.now(tz=timezone.utc)
        db.commit()
        db.refresh(comment)
    if truncated:
        logger.info("Weekly comment for %s truncated to %d chars", week_key, len(final))
    (hub or get_hub()).publish(WEEKLY_COMMENTS_TOPIC, {"week_key": week_key})
    return comment


def get_weekly_comment(db: Session, week_key: str) -> WeeklyComment:
    parse_week_key(week_key)
    comment = db.query(WeeklyComment).filter(WeeklyComment.week_key == week_key).first()
    if comment is None:
        raise WeeklyCommentNotFoundError(week_key)
    return comment


def list_weekly_comments(db: Session, limit: Optional[int] = None) -> list[WeeklyComment]:
    return (
        db.query(WeeklyComment)
        .order_by(WeeklyComment.week_key.desc())
        .limit(settings.WEEKLY_COMMENT_HISTORY if limit is None else limit)
        .all()
    )
