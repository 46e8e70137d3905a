"""
Unit tests for the date-key resolver. Pure functions, no database.
"""
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from diary.core.errors import (
    InvalidDayKeyError,
    InvalidInstantError,
    InvalidMonthKeyError,
    InvalidWeekKeyError,
)
from diary.services.calendar import (
    CalendarConfig,
    day_info_for_key,
    day_keys_between,
    display_label_for,
    month_key_for,
    parse_day_key,
    parse_month_key,
    parse_week_key,
    previous_week_key,
    resolve_date,
    sunday_week_number,
    week_bounds,
    week_key_for,
)
TOKYO = CalendarConfig(time_zone="Asia/Tokyo", late_night_cutoff_hour=1)

JST = ZoneInfo("Asia/Tokyo")


class TestResolveDate:
    def test_before_cutoff_belongs_to_previous_day(self):
        info = resolve_date(datetime(2024, 3, 10, 0, 30, tzinfo=JST), config=TOKYO)
        assert info.day_key == "2024-03-09"
        assert info.is_late_night is True
        assert info.display_label == "2024年3月9日(土)"

    def test_at_cutoff_is_same_day(self):
        info = resolve_date(datetime(2024, 3, 10, 1, 0, tzinfo=JST), config=TOKYO)
        assert info.day_key == "2024-03-10"
        assert info.is_late_night is False

    def test_cutoff_can_be_disabled(self):
        info = resolve_date(
            datetime(2024, 3, 10, 0, 30, tzinfo=JST), respect_cutoff=False, config=TOKYO
        )
        assert info.day_key == "2024-03-10"
        assert info.is_late_night is False

    def test_zero_cutoff_never_shifts(self):
        cfg = CalendarConfig(time_zone="Asia/Tokyo", late_night_cutoff_hour=0)
        info = resolve_date(datetime(2024, 3, 10, 0, 0, tzinfo=JST), config=cfg)
        assert info.day_key == "2024-03-10"
        assert info.is_late_night is False

    def test_instant_converted_to_configured_zone(self):
        # 15:30 UTC on Mar 9 is 00:30 JST on Mar 10
        info = resolve_date(datetime(2024, 3, 9, 15, 30, tzinfo=timezone.utc), config=TOKYO)
        assert info.day_key == "2024-03-09"
        assert info.is_late_night is True
        assert info.local.utcoffset() == timedelta(hours=9)

    def test_late_night_on_jan_first_uses_previous_year_week(self):
        info = resolve_date(datetime(2024, 1, 1, 0, 15, tzinfo=JST), config=TOKYO)
        assert info.day_key == "2023-12-31"
        assert info.week_key.startswith("2023-W")

    def test_naive_instant_rejected(self):
        with pytest.raises(InvalidInstantError):
            resolve_date(datetime(2024, 3, 10, 12, 0), config=TOKYO)

    def test_month_key(self):
        info = resolve_date(datetime(2024, 3, 1, 0, 30, tzinfo=JST), config=TOKYO)
        assert info.day_key == "2024-02-29"
        assert info.month_key == "2024-02"

    def test_instant_at_start_of_calendar_rejected(self):
        with pytest.raises(InvalidInstantError):
            resolve_date(datetime(1, 1, 1, 0, 30, tzinfo=JST), config=TOKYO)

    def test_instant_at_end_of_calendar_rejected(self):
        with pytest.raises(InvalidInstantError):
            resolve_date(datetime(9999, 12, 31, 23, 0, tzinfo=timezone.utc), config=TOKYO)

    def test_day_info_for_key_ignores_cutoff(self):
        info = day_info_for_key("2024-03-09", TOKYO)
        assert info.day_key == "2024-03-09"
        assert info.is_late_night is False
        assert info.week_key == "2024-W10"


class TestWeekKeys:
    def test_jan_first_on_monday_is_week_one(self):
        # 2024-01-01 is a Monday
        assert date(2024, 1, 1).isoweekday() == 1
        assert sunday_week_number(date(2024, 1, 1)) == 1
        assert week_key_for(date(2024, 1, 1)) == "2024-W01"

    def test_first_sunday_starts_week_two(self):
        assert week_key_for(date(2024, 1, 6)) == "2024-W01"
        assert week_key_for(date(2024, 1, 7)) == "2024-W02"

    def test_jan_first_on_sunday(self):
        # 2023-01-01 is a Sunday: a full first week
        assert week_key_for(date(2023, 1, 7)) == "2023-W01"
        assert week_key_for(date(2023, 1, 8)) == "2023-W02"

    def test_not_iso_weeks(self):
        # ISO puts 2021-01-01 in 2020-W53; here it is week 1 of 2021
        assert week_key_for(date(2021, 1, 1)) == "2021-W01"

    def test_week_numbers_non_decreasing_and_reset(self):
        day = date(2023, 1, 1)
        previous = 0
        while day.year == 2023:
            n = sunday_week_number(day)
            assert n >= previous
            assert n - previous <= 1
            previous = n
            day += timedelta(days=1)
        assert sunday_week_number(date(2024, 1, 1)) == 1

    def test_last_week_of_year(self):
        # 2024-12-31 is a Tuesday; Dec 29 (Sunday) opens week 53
        assert week_key_for(date(2024, 12, 29)) == "2024-W53"
        assert week_key_for(date(2024, 12, 31)) == "2024-W53"

    def test_week_bounds(self):
        assert week_bounds("2024-W11") == (date(2024, 3, 10), date(2024, 3, 16))

    def test_week_bounds_clamped_to_year(self):
        assert week_bounds("2024-W01") == (date(2024, 1, 1), date(2024, 1, 6))
        assert week_bounds("2024-W53") == (date(2024, 12, 29), date(2024, 12, 31))

    def test_bounds_agree_with_week_key(self):
        first, last = week_bounds("2025-W20")
        for key in day_keys_between(first, last):
            assert week_key_for(date.fromisoformat(key)) == "2025-W20"
        assert week_key_for(first - timedelta(days=1)) == "2025-W19"

    def test_previous_week_key_crosses_year(self):
        assert previous_week_key("2024-W02") == "2024-W01"
        assert previous_week_key("2024-W01") == "2023-W53"

    def test_bounds_of_supported_years(self):
        assert week_bounds("0002-W01") == (date(2, 1, 1), date(2, 1, 4))
        assert week_bounds("9998-W53")[1] == date(9998, 12, 31)
        assert previous_week_key("0002-W01") == "0001-W53"

    @pytest.mark.parametrize("value", ["9999-W53", "0001-W01", "0000-W01"])
    def test_week_bounds_outside_supported_years(self, value):
        with pytest.raises(InvalidWeekKeyError):
            week_bounds(value)

    def test_previous_of_first_week_rejected(self):
        with pytest.raises(InvalidWeekKeyError):
            previous_week_key("0001-W01")


class TestParsing:
    def test_parse_day_key(self):
        assert parse_day_key("2024-02-29") == date(2024, 2, 29)

    @pytest.mark.parametrize("value", [
            "2023-02-29", "2024-3-9", "20240309", "", None, "2024-13-01", "0001-01-01", "9999-12-31",
        ])
    def test_invalid_day_keys(self, value):
        with pytest.raises(InvalidDayKeyError):
            parse_day_key(value)

    def test_parse_week_key(self):
        assert parse_week_key("2024-W11") == (2024, 11)

    @pytest.mark.parametrize("value", ["2024-W00", "2024-W54", "2023-W54", "2024W11", "2024-11"])
    def test_invalid_week_keys(self, value):
        with pytest.raises(InvalidWeekKeyError):
            parse_week_key(value)

    def test_parse_month_key(self):
        assert parse_month_key("2024-03") == (2024, 3)
        assert month_key_for(date(2024, 3, 9)) == "2024-03"

    @pytest.mark.parametrize("value", ["2024-00", "2024-13", "2024-3", "2024-03-01", "0001-01", "9999-12"])
    def test_invalid_month_keys(self, value):
        with pytest.raises(InvalidMonthKeyError):
            parse_month_key(value)

    def test_display_label(self):
        assert display_label_for(date(2024, 3, 10)) == "2024年3月10日(日)"
