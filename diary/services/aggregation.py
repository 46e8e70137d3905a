"""
Aggregation engine: per-day score / thanks totals and their roll-ups.

Day refold
----------
Totals are a full recompute from the day's current entries, never a delta:
running it twice on the same entries yields the same row, so retries and
repeated change notifications are harmless.

Thanks increment
----------------
The only delta path. Applied as one conditional UPDATE
(`col = col + 1 WHERE day_key = :k`) so concurrent increments from both
participants all land. Zero rows matched -> DayNotFoundError.

Roll-up
-------
Read-only fold over a window of DayRecords for a day / week / month scope.
No scored entries -> average is None ("no data"), never 0.

Breakdown backfill
------------------
Rows written before revision 0002 carry no score_breakdown. Roll-ups rebuild
it from day_entries once per day_key and keep it in a process-lifetime cache.
A failed rebuild degrades that day (combined totals still count) instead of
failing the roll-up.

Public API
----------
fold_entries(entries)                                  -> DayTotals
refold_day(db, day_key)                                -> DayRecord
increment_thanks(db, day_key, role)                    -> DayRecord
roll_up(records, scope, key, acting_role, breakdown_for) -> ScopeStats
BreakdownCache.resolve(db, record)                     -> dict[Role, RoleTotals]
"""
from __future__ import annotations

import enum
import json
import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from diary.core.errors import BackfillFailedError, DayNotFoundError
from diary.db.base import transient_store_errors
from diary.models.day import DayRecord, THANKS_COLUMNS
from diary.models.entry import DayEntry
from diary.models.role import Role, ROLES
from diary.services.calendar import parse_day_key, parse_month_key, parse_week_key
from diary.services.notifications import ChangeHub, day_topic, get_hub

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class RoleTotals:
    sum: float = 0
    count: int = 0

    @property
    def average(self) -> Optional[float]:
        return self.sum / self.count if self.count else None

    def add(self, other: "RoleTotals") -> None:
        self.sum += other.sum
        self.count += other.count

    def to_dict(self) -> dict[str, Any]:
        return {"sum": self.sum, "count": self.count, "average": self.average}


def _empty_breakdown() -> dict[Role, RoleTotals]:
    return {role: RoleTotals() for role in ROLES}


@dataclass
class DayTotals:
    by_role: dict[Role, RoleTotals] = field(default_factory=_empty_breakdown)

    @property
    def score_sum(self) -> float:
        return sum(t.sum for t in self.by_role.values())

    @property
    def score_count(self) -> int:
        return sum(t.count for t in self.by_role.values())

    @property
    def score_average(self) -> Optional[float]:
        count = self.score_count
        return self.score_sum / count if count else None


# ---------------------------------------------------------------------------
# Breakdown encoding
# ---------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def encode_breakdown(by_role: dict[Role, RoleTotals]) -> str:
    return json.dumps({role.value: by_role[role].to_dict() for role in ROLES})


def decode_breakdown(raw: Optional[str]) -> Optional[dict[Role, RoleTotals]]:
    """Parse a stored breakdown. None unless every role has numeric sum/count."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except (ValueError, TypeError):
        return None
    if not isinstance(data, dict):
        return None
    result: dict[Role, RoleTotals] = {}
    for role in ROLES:
        item = data.get(role.value)
        if not isinstance(item, dict):
            return None
        total, count = item.get("sum"), item.get("count")
        if not (_is_number(total) and _is_number(count)):
            return None
        result[role] = RoleTotals(sum=total, count=int(count))
    return result


# ---------------------------------------------------------------------------
# Day refold
# ---------------------------------------------------------------------------

def _coerce_role(value: Any) -> Optional[Role]:
    try:
        return Role(value)
    except ValueError:
        return None


def fold_entries(entries: Iterable[Any]) -> DayTotals:
    """Sum each role's finite scores. Entries need `.role` and `.score`."""
    totals = DayTotals()
    for entry in entries:
        role = _coerce_role(entry.role)
        if role is None or not _is_number(entry.score):
            continue
        totals.by_role[role].sum += entry.score
        totals.by_role[role].count += 1
    return totals


def apply_totals(day: DayRecord, totals: DayTotals, now: Optional[datetime] = None) -> DayRecord:
    day.score_sum = totals.score_sum
    day.score_count = totals.score_count
    day.score_average = totals.score_average
    day.score_breakdown = encode_breakdown(totals.by_role)
    day.last_aggregate_at = now or _now()
    return day


def recompute_day(db: Session, day: DayRecord) -> DayTotals:
    """Recompute `day` from its entries. Flushes, does NOT commit."""
    entries = db.query(DayEntry).filter(DayEntry.day_key == day.day_key).all()
    totals = fold_entries(entries)
    apply_totals(day, totals)
    db.flush()
    _cache.discard(day.day_key)
    return totals


def refold_day(db: Session, day_key: str, hub: Optional[ChangeHub] = None) -> DayRecord:
    """Recompute and persist a day's score totals from its current entries."""
    parse_day_key(day_key)
    with transient_store_errors(db, "refold_day"):
        day = db.get(DayRecord, day_key)
        if day is None:
            raise DayNotFoundError(day_key)
        totals = recompute_day(db, day)
        db.commit()
        db.refresh(day)
    logger.debug(
        "Aggregates synced day=%s score_sum=%s score_count=%s",
        day_key, totals.score_sum, totals.score_count,
    )
    (hub or get_hub()).publish(day_topic(day_key), {"kind": "refold", "day_key": day_key})
    return day


# ---------------------------------------------------------------------------
# Thanks increment
# ---------------------------------------------------------------------------

def increment_thanks(
    db: Session,
    day_key: str,
    role: Role,
    hub: Optional[ChangeHub] = None,
) -> DayRecord:
    """Atomically add one thanks from `role` to an existing day."""
    parse_day_key(day_key)
    column = THANKS_COLUMNS[Role(role)]
    stmt = (
        update(DayRecord)
        .where(DayRecord.day_key == day_key)
        .values({
            column.key: column + 1,
            "thanks_total": DayRecord.thanks_total + 1,
            "updated_at": _now(),
        })
        .execution_options(synchronize_session=False)
    )
    with transient_store_errors(db, "increment_thanks"):
        result = db.execute(stmt)
        if result.rowcount == 0:
            db.rollback()
            raise DayNotFoundError(day_key)
        db.commit()
        day = db.get(DayRecord, day_key)
        db.refresh(day)
    logger.info("Thanks incremented day=%s role=%s", day_key, Role(role).value)
    (hub or get_hub()).publish(
        day_topic(day_key), {"kind": "thanks", "day_key": day_key, "role": Role(role).value}
    )
    return day


# ---------------------------------------------------------------------------
# Backfill cache
# ---------------------------------------------------------------------------

BreakdownResolver = Callable[[DayRecord], dict[Role, RoleTotals]]


class BreakdownCache:
    """day_key -> breakdown rebuilt from entries. Process lifetime, not durable."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, dict[Role, RoleTotals]] = {}
        self.backfills = 0

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, day_key: str) -> bool:
        return day_key in self._items

    def get(self, day_key: str) -> Optional[dict[Role, RoleTotals]]:
        with self._lock:
            return self._items.get(day_key)

    def discard(self, day_key: str) -> None:
        with self._lock:
            self._items.pop(day_key, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def resolve(self, db: Session, record: DayRecord) -> dict[Role, RoleTotals]:
        cached = self.get(record.day_key)
        if cached is not None:
            return cached
        try:
            entries = db.query(DayEntry).filter(DayEntry.day_key == record.day_key).all()
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackfillFailedError(record.day_key, reason=str(exc)) from exc
        breakdown = fold_entries(entries).by_role
        with self._lock:
            self._items[record.day_key] = breakdown
            self.backfills += 1
        logger.info("Backfilled score breakdown for legacy day %s", record.day_key)
        return breakdown

    def resolver(self, db: Session) -> BreakdownResolver:
        return lambda record: self.resolve(db, record)


_cache = BreakdownCache()


def get_breakdown_cache() -> BreakdownCache:
    return _cache


# ---------------------------------------------------------------------------
# Roll-up
# ---------------------------------------------------------------------------

class Scope(str, enum.Enum):
    day = "day"
    week = "week"
    month = "month"


@dataclass
class ScopeStats:
    scope: Scope
    key: str
    acting_role: Role
    days: int = 0
    score_sum: float = 0
    score_count: int = 0
    by_role: dict[Role, RoleTotals] = field(default_factory=_empty_breakdown)
    thanks_total: int = 0
    thanks_by_role: dict[Role, int] = field(default_factory=lambda: {r: 0 for r in ROLES})
    degraded_days: list[str] = field(default_factory=list)

    @property
    def average(self) -> Optional[float]:
        return self.score_sum / self.score_count if self.score_count else None

    @property
    def has_data(self) -> bool:
        return self.score_count > 0

    @property
    def thanks_sent(self) -> int:
        return self.thanks_by_role[self.acting_role]

    @property
    def thanks_received(self) -> int:
        return self.thanks_by_role[self.acting_role.other]


def _check_scope_key(scope: Scope, key: str) -> None:
    if scope == Scope.day:
        parse_day_key(key)
    elif scope == Scope.week:
        parse_week_key(key)
    else:
        parse_month_key(key)


def _in_scope(record: DayRecord, scope: Scope, key: str) -> bool:
    if scope == Scope.day:
        return record.day_key == key
    if scope == Scope.week:
        return record.week_key == key
    return record.day_key.startswith(f"{key}-")


def roll_up(
    records: Iterable[DayRecord],
    scope: Scope,
    key: str,
    acting_role: Role,
    breakdown_for: Optional[BreakdownResolver] = None,
) -> ScopeStats:
    """
    Fold the records of one scope into combined and per-role totals.
    `breakdown_for` rebuilds a missing breakdown; without it such days
    are reported in degraded_days.
    """
    scope = Scope(scope)
    _check_scope_key(scope, key)
    stats = ScopeStats(scope=scope, key=key, acting_role=Role(acting_role))

    for record in records:
        if not _in_scope(record, scope, key):
            continue
        stats.days += 1
        stats.score_sum += record.score_sum or 0
        stats.score_count += record.score_count or 0
        stats.thanks_total += record.thanks_total or 0
        for role in ROLES:
            stats.thanks_by_role[role] += record.thanks_for(role)

        breakdown = decode_breakdown(record.score_breakdown)
        if breakdown is None and breakdown_for is not None:
            try:
                breakdown = breakdown_for(record)
            except BackfillFailedError as exc:
                logger.warning("Roll-up %s %s without breakdown: %s", scope.value, key, exc.message)
        if breakdown is None:
            stats.degraded_days.append(record.day_key)
            continue
        for role in ROLES:
            stats.by_role[role].add(breakdown[role])

    return stats
