"""
Aggregation engine tests: day refold, thanks increment, roll-ups and the
lazy breakdown backfill. Days live in 2101.
"""
import json
import threading
from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from diary.core.errors import BackfillFailedError, DayNotFoundError, InvalidWeekKeyError
from diary.models.day import DayRecord
from diary.models.entry import DayEntry
from diary.models.role import Role
from diary.services.aggregation import (
    BreakdownCache,
    RoleTotals,
    Scope,
    decode_breakdown,
    encode_breakdown,
    fold_entries,
    get_breakdown_cache,
    increment_thanks,
    refold_day,
    roll_up,
)
from diary.services.calendar import display_label_for, week_key_for
from diary.services.days import ensure_day, upsert_entry
from diary.services.notifications import day_topic


class _Entry:
    def __init__(self, role, score):
        self.role = role
        self.score = score


def _record(day: date, score_by_role=None, thanks=(0, 0), breakdown=True) -> DayRecord:
    """An unsaved DayRecord for pure roll-up tests."""
    totals = fold_entries(_Entry(r, s) for r, s in (score_by_role or {}).items())
    return DayRecord(
        day_key=day.isoformat(),
        display_label=display_label_for(day),
        week_key=week_key_for(day),
        time_zone="Asia/Tokyo",
        score_sum=totals.score_sum,
        score_count=totals.score_count,
        score_average=totals.score_average,
        score_breakdown=encode_breakdown(totals.by_role) if breakdown else None,
        thanks_master=thanks[0],
        thanks_partner=thanks[1],
        thanks_total=sum(thanks),
    )


# ---------------------------------------------------------------------------
# Pure fold
# ---------------------------------------------------------------------------

class TestFoldEntries:
    def test_two_roles(self):
        totals = fold_entries([_Entry("master", 4), _Entry("partner", 2)])
        assert totals.score_sum == 6
        assert totals.score_count == 2
        assert totals.score_average == 3.0
        assert totals.by_role[Role.master].average == 4.0
        assert totals.by_role[Role.partner].average == 2.0

    def test_no_entries_means_no_average(self):
        totals = fold_entries([])
        assert totals.score_count == 0
        assert totals.score_average is None
        assert totals.by_role[Role.master].average is None

    def test_skips_missing_and_non_numeric_scores(self):
        totals = fold_entries([
            _Entry("master", None),
            _Entry("master", "3"),
            _Entry("partner", float("nan")),
            _Entry("partner", True),
            _Entry("partner", 1),
            _Entry("stranger", 4),
        ])
        assert totals.score_count == 1
        assert totals.by_role[Role.partner].sum == 1
        assert totals.by_role[Role.master].count == 0

    def test_breakdown_round_trip_matches_combined(self):
        totals = fold_entries([_Entry(Role.master, 3), _Entry(Role.partner, 4)])
        decoded = decode_breakdown(encode_breakdown(totals.by_role))
        assert sum(t.sum for t in decoded.values()) == totals.score_sum
        assert sum(t.count for t in decoded.values()) == totals.score_count

    @pytest.mark.parametrize("raw", [
        None,
        "",
        "not json",
        "[]",
        json.dumps({"master": {"sum": 4, "count": 1}}),
        json.dumps({"master": {"sum": 4, "count": 1}, "partner": {"sum": "2", "count": 1}}),
        json.dumps({"master": {"sum": 4, "count": 1}, "partner": None}),
    ])
    def test_invalid_breakdowns(self, raw):
        assert decode_breakdown(raw) is None


# ---------------------------------------------------------------------------
# Day refold (database)
# ---------------------------------------------------------------------------

class TestRefold:
    def test_entries_from_both_roles(self, db, master, partner, hub):
        upsert_entry(db, "2101-01-05", master, score=4, hub=hub)
        result = upsert_entry(db, "2101-01-05", partner, score=2, hub=hub)

        day = result.day
        assert day.score_sum == 6
        assert day.score_count == 2
        assert day.score_average == 3.0
        breakdown = decode_breakdown(day.score_breakdown)
        assert breakdown[Role.master].average == 4.0
        assert breakdown[Role.partner].average == 2.0

    def test_resubmission_overwrites(self, db, master, hub):
        upsert_entry(db, "2101-01-06", master, score=1, note="rough", hub=hub)
        result = upsert_entry(db, "2101-01-06", master, score=4, note="better", hub=hub)

        assert result.day.score_sum == 4
        assert result.day.score_count == 1
        entries = db.query(DayEntry).filter(DayEntry.day_key == "2101-01-06").all()
        assert len(entries) == 1
        assert entries[0].note == "better"

    def test_refold_is_idempotent(self, db, master, partner, hub):
        upsert_entry(db, "2101-01-07", master, score=3, hub=hub)
        upsert_entry(db, "2101-01-07", partner, score=4, hub=hub)

        first = refold_day(db, "2101-01-07", hub=hub)
        snapshot = (first.score_sum, first.score_count, first.score_average, first.score_breakdown)
        second = refold_day(db, "2101-01-07", hub=hub)
        assert (second.score_sum, second.score_count, second.score_average,
                second.score_breakdown) == snapshot

    def test_refold_repairs_drifted_totals(self, db, master, hub):
        upsert_entry(db, "2101-01-08", master, score=2, hub=hub)
        day = db.get(DayRecord, "2101-01-08")
        day.score_sum = 99
        day.score_count = 7
        db.commit()

        day = refold_day(db, "2101-01-08", hub=hub)
        assert day.score_sum == 2
        assert day.score_count == 1

    def test_empty_day_has_no_average(self, db):
        day = ensure_day(db, "2101-01-09")
        assert day.score_count == 0
        assert day.score_average is None

    def test_refold_missing_day(self, db, hub):
        with pytest.raises(DayNotFoundError):
            refold_day(db, "2101-12-30", hub=hub)

    def test_refold_publishes(self, db, master, hub):
        upsert_entry(db, "2101-01-10", master, score=3, hub=hub)
        seen = []
        hub.subscribe(day_topic("2101-01-10"), seen.append)
        refold_day(db, "2101-01-10", hub=hub)
        assert [n.payload["kind"] for n in seen] == ["refold"]


# ---------------------------------------------------------------------------
# Thanks increment
# ---------------------------------------------------------------------------

class TestThanks:
    def test_increment(self, db, hub):
        ensure_day(db, "2101-02-01")
        increment_thanks(db, "2101-02-01", Role.master, hub=hub)
        day = increment_thanks(db, "2101-02-01", Role.partner, hub=hub)
        assert day.thanks_total == 2
        assert day.thanks_breakdown == {"master": 1, "partner": 1}

    def test_missing_day_is_not_created(self, db, hub):
        with pytest.raises(DayNotFoundError):
            increment_thanks(db, "2101-12-31", Role.master, hub=hub)
        assert db.get(DayRecord, "2101-12-31") is None

    def test_does_not_touch_scores(self, db, master, hub):
        upsert_entry(db, "2101-02-02", master, score=4, hub=hub)
        day = increment_thanks(db, "2101-02-02", Role.master, hub=hub)
        assert day.score_sum == 4
        assert day.score_count == 1

    def test_concurrent_increments_all_land(self, db, session_factory, hub):
        ensure_day(db, "2101-02-03")
        per_thread = 5
        barrier = threading.Barrier(2)
        errors = []

        def worker():
            session = session_factory()
            try:
                barrier.wait()
                for _ in range(per_thread):
                    increment_thanks(session, "2101-02-03", Role.master, hub=hub)
            except Exception as exc:  # surfaced below
                errors.append(exc)
            finally:
                session.close()

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        db.expire_all()
        day = db.get(DayRecord, "2101-02-03")
        assert day.thanks_master == 2 * per_thread
        assert day.thanks_total == 2 * per_thread
        assert day.thanks_partner == 0


# ---------------------------------------------------------------------------
# Roll-up (pure)
# ---------------------------------------------------------------------------

class TestRollUp:
    def test_week_filters_window(self):
        # Mar 3..9 are 2024-W10; Mar 10..12 are 2024-W11, the last one unscored
        window = [
            _record(date(2024, 3, 3) + timedelta(days=i), {Role.master: 1}, thanks=(1, 0))
            for i in range(7)
        ]
        window += [
            _record(date(2024, 3, 10), {Role.master: 4}, thanks=(2, 1)),
            _record(date(2024, 3, 11), {Role.partner: 3}),
            _record(date(2024, 3, 12)),
        ]
        assert len(window) == 10

        stats = roll_up(window, Scope.week, "2024-W11", Role.master)
        assert stats.days == 3
        assert stats.score_count == 2
        assert stats.average == 3.5
        assert stats.by_role[Role.master].average == 4.0
        assert stats.by_role[Role.partner].average == 3.0
        assert stats.thanks_total == 3
        assert stats.thanks_sent == 2
        assert stats.thanks_received == 1

    def test_sent_and_received_follow_acting_role(self):
        window = [_record(date(2024, 3, 10), thanks=(2, 5))]
        stats = roll_up(window, Scope.day, "2024-03-10", Role.partner)
        assert stats.thanks_sent == 5
        assert stats.thanks_received == 2

    def test_month_scope(self):
        window = [
            _record(date(2024, 2, 29), {Role.master: 1}),
            _record(date(2024, 3, 1), {Role.master: 4, Role.partner: 4}),
            _record(date(2024, 3, 31), {Role.partner: 2}),
            _record(date(2024, 4, 1), {Role.partner: 1}),
        ]
        stats = roll_up(window, Scope.month, "2024-03", Role.master)
        assert stats.days == 2
        assert stats.score_sum == 10
        assert stats.score_count == 3

    def test_no_data_is_none_not_zero(self):
        stats = roll_up([_record(date(2024, 3, 10))], Scope.day, "2024-03-10", Role.master)
        assert stats.days == 1
        assert stats.average is None
        assert stats.has_data is False

        empty = roll_up([], Scope.week, "2024-W11", Role.master)
        assert empty.days == 0
        assert empty.average is None

    def test_invalid_scope_key(self):
        with pytest.raises(InvalidWeekKeyError):
            roll_up([], Scope.week, "2024-11", Role.master)

    def test_per_role_sums_match_combined(self):
        window = [
            _record(date(2024, 3, 10), {Role.master: 4, Role.partner: 2}),
            _record(date(2024, 3, 11), {Role.master: 3}),
        ]
        stats = roll_up(window, Scope.week, "2024-W11", Role.master)
        assert sum(t.sum for t in stats.by_role.values()) == stats.score_sum
        assert sum(t.count for t in stats.by_role.values()) == stats.score_count

    def test_legacy_day_without_resolver_is_degraded(self):
        window = [
            _record(date(2024, 3, 10), {Role.master: 4}),
            _record(date(2024, 3, 11), {Role.partner: 2}, breakdown=False),
        ]
        stats = roll_up(window, Scope.week, "2024-W11", Role.master)
        # combined totals still count the legacy day
        assert stats.score_sum == 6
        assert stats.score_count == 2
        assert stats.by_role[Role.partner].count == 0
        assert stats.degraded_days == ["2024-03-11"]

    def test_resolver_failure_degrades_only_that_day(self):
        def failing(record):
            raise BackfillFailedError(record.day_key, reason="store offline")

        window = [
            _record(date(2024, 3, 10), {Role.master: 4}),
            _record(date(2024, 3, 11), {Role.partner: 2}, breakdown=False),
        ]
        stats = roll_up(window, Scope.week, "2024-W11", Role.master, failing)
        assert stats.average == 3.0
        assert stats.by_role[Role.master].sum == 4
        assert stats.degraded_days == ["2024-03-11"]


# ---------------------------------------------------------------------------
# Breakdown backfill
# ---------------------------------------------------------------------------

class _FailingSession:
    def query(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    def rollback(self):
        pass


class TestBackfill:
    def _legacy_day(self, db, day_key, master, partner, hub):
        upsert_entry(db, day_key, master, score=4, hub=hub)
        upsert_entry(db, day_key, partner, score=1, hub=hub)
        day = db.get(DayRecord, day_key)
        day.score_breakdown = None
        db.commit()
        return day

    def test_missing_breakdown_rebuilt_from_entries(self, db, master, partner, hub):
        day = self._legacy_day(db, "2101-03-05", master, partner, hub)
        cache = get_breakdown_cache()

        stats = roll_up([day], Scope.day, "2101-03-05", Role.master, cache.resolver(db))
        assert stats.degraded_days == []
        assert stats.by_role[Role.master].sum == 4
        assert stats.by_role[Role.partner].sum == 1
        assert "2101-03-05" in cache

    def test_backfill_runs_once_per_day(self, db, master, partner, hub):
        day = self._legacy_day(db, "2101-03-06", master, partner, hub)
        cache = BreakdownCache()

        roll_up([day], Scope.day, "2101-03-06", Role.master, cache.resolver(db))
        roll_up([day], Scope.month, "2101-03", Role.partner, cache.resolver(db))
        assert cache.backfills == 1
        assert len(cache) == 1

    def test_valid_breakdown_skips_backfill(self, db, master, hub):
        upsert_entry(db, "2101-03-07", master, score=3, hub=hub)
        day = db.get(DayRecord, "2101-03-07")
        cache = BreakdownCache()
        roll_up([day], Scope.day, "2101-03-07", Role.master, cache.resolver(db))
        assert cache.backfills == 0

    def test_new_entry_invalidates_cached_breakdown(self, db, master, partner, hub):
        self._legacy_day(db, "2101-03-08", master, partner, hub)
        cache = get_breakdown_cache()
        cache.resolve(db, db.get(DayRecord, "2101-03-08"))
        assert "2101-03-08" in cache

        upsert_entry(db, "2101-03-08", partner, score=3, hub=hub)
        assert "2101-03-08" not in cache
        assert decode_breakdown(db.get(DayRecord, "2101-03-08").score_breakdown) is not None

    def test_read_failure_raises_backfill_failed(self):
        record = _record(date(2101, 3, 9), breakdown=False)
        with pytest.raises(BackfillFailedError) as info:
            BreakdownCache().resolve(_FailingSession(), record)
        assert info.value.details["day_key"] == "2101-03-09"

    def test_read_failure_degrades_roll_up(self):
        record = _record(date(2101, 3, 9), {Role.master: 2}, breakdown=False)
        cache = BreakdownCache()
        stats = roll_up([record], Scope.day, "2101-03-09", Role.master, cache.resolver(_FailingSession()))
        assert stats.score_sum == 2
        assert stats.degraded_days == ["2101-03-09"]
        assert len(cache) == 0

    def test_role_totals_average(self):
        assert RoleTotals(sum=7, count=2).average == 3.5
        assert RoleTotals().average is None
