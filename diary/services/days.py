"""
Day threads: create-if-absent, entry upserts and history windows.

Public API
----------
ensure_day(db, day_key)                               -> DayRecord
get_day(db, day_key)                                  -> DayRecord   (404 if absent)
get_entries(db, day_key)                              -> list[DayEntry]
upsert_entry(db, day_key, profile, score, note)       -> EntryWrite  (refolds)
list_history(db, limit, before)                       -> (list[DayRecord], has_more)
recent_days(db, until, limit)                         -> list[DayRecord]  newest first
days_between(db, first, last)                         -> list[DayRecord]  oldest first
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from diary.core.config import settings
from diary.core.errors import DayNotFoundError, TransientStoreError
from diary.db.base import transient_store_errors
from diary.models.day import DayRecord
from diary.models.entry import DayEntry
from diary.services.aggregation import DayTotals, recompute_day, apply_totals
from diary.services.calendar import CalendarConfig, day_info_for_key, parse_day_key
from diary.services.identity import Profile
from diary.services.notifications import ChangeHub, day_topic, get_hub

logger = logging.getLogger(__name__)

# 4 = good … 1 = bad
SCORE_OPTIONS: dict[int, str] = {
    4: "good",
    3: "fairly good",
    2: "fairly bad",
    1: "bad",
}
MIN_SCORE = min(SCORE_OPTIONS)
MAX_SCORE = max(SCORE_OPTIONS)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass
class EntryWrite:
    entry: DayEntry
    day: DayRecord
    totals: DayTotals


# ---------------------------------------------------------------------------
# Day records
# ---------------------------------------------------------------------------

def ensure_day(
    db: Session,
    day_key: str,
    config: Optional[CalendarConfig] = None,
) -> DayRecord:
    """Return the day's record, creating an empty one on first access."""
    info = day_info_for_key(day_key, config)
    existing = db.get(DayRecord, day_key)
    if existing is not None:
        return existing

    cfg = config or CalendarConfig.from_settings()
    day = DayRecord(
        day_key=info.day_key,
        display_label=info.display_label,
        week_key=info.week_key,
        time_zone=cfg.time_zone,
        thanks_total=0,
        thanks_master=0,
        thanks_partner=0,
    )
    apply_totals(day, DayTotals())
    with transient_store_errors(db, "ensure_day"):
        db.add(day)
        try:
            db.commit()
        except IntegrityError:
            # Created concurrently by the other participant; use theirs.
            db.rollback()
            day = db.get(DayRecord, day_key)
            if day is None:
                raise
            return day
        db.refresh(day)
    logger.debug("Created day thread %s (%s)", day.day_key, day.week_key)
    return day


def get_day(db: Session, day_key: str) -> DayRecord:
    parse_day_key(day_key)
    day = db.get(DayRecord, day_key)
    if day is None:
        raise DayNotFoundError(day_key)
    return day


def get_entries(db: Session, day_key: str) -> list[DayEntry]:
    return (
        db.query(DayEntry)
        .filter(DayEntry.day_key == day_key)
        .order_by(DayEntry.updated_at.desc())
        .all()
    )


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------

def upsert_entry(
    db: Session,
    day_key: str,
    profile: Profile,
    score: Optional[int],
    note: str = "",
    hub: Optional[ChangeHub] = None,
) -> EntryWrite:
    """
    Write the caller's entry for the day (last write wins) and refold the
    day's totals in the same transaction.
    """
    day = ensure_day(db, day_key)
    with transient_store_errors(db, "upsert_entry"):
        entry = (
            db.query(DayEntry)
            .filter(DayEntry.day_key == day_key, DayEntry.role == profile.role)
            .first()
        )
        if entry is None:
            entry = DayEntry(day_key=day_key, role=profile.role)
            db.add(entry)
        entry.score = score
        entry.note = note or ""
        entry.author_email = profile.email
        entry.updated_at = _now()
        try:
            db.flush()
        except IntegrityError as exc:
            # Same participant saving twice at once; the refold is safe to retry.
            db.rollback()
            raise TransientStoreError(operation="upsert_entry", reason="concurrent write") from exc
        totals = recompute_day(db, day)
        db.commit()
        db.refresh(entry)
        db.refresh(day)

    (hub or get_hub()).publish(
        day_topic(day_key), {"kind": "entry", "day_key": day_key, "role": profile.role.value}
    )
    return EntryWrite(entry=entry, day=day, totals=totals)


# ---------------------------------------------------------------------------
# Windows
# ---------------------------------------------------------------------------

def list_history(
    db: Session,
    limit: Optional[int] = None,
    before: Optional[str] = None,
) -> tuple[list[DayRecord], bool]:
    """One page of day threads, newest first. `before` is an exclusive cursor."""
    page_size = settings.HISTORY_BATCH if limit is None else limit
    q = db.query(DayRecord)
    if before:
        parse_day_key(before)
        q = q.filter(DayRecord.day_key < before)
    rows = q.order_by(DayRecord.day_key.desc()).limit(page_size + 1).all()
    return rows[:page_size], len(rows) > page_size


def recent_days(
    db: Session,
    until: Optional[str] = None,
    limit: Optional[int] = None,
) -> list[DayRecord]:
    """The bounded stats window: up to `limit` days on or before `until`."""
    q = db.query(DayRecord)
    if until:
        parse_day_key(until)
        q = q.filter(DayRecord.day_key <= until)
    return (
        q.order_by(DayRecord.day_key.desc())
        .limit(settings.STATS_WINDOW_DAYS if limit is None else limit)
        .all()
    )


def days_between(db: Session, first: str, last: str) -> list[DayRecord]:
    parse_day_key(first)
    parse_day_key(last)
    return (
        db.query(DayRecord)
        .filter(DayRecord.day_key >= first, DayRecord.day_key <= last)
        .order_by(DayRecord.day_key.asc())
        .all()
    )
