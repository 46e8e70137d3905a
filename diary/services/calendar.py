"""
Calendar service: day keys, week keys and the late-night cutoff.

Rules
-----
- Every instant is bucketed in the configured zone (settings.TIMEZONE).
- Instants before LATE_NIGHT_CUTOFF_HOUR local time belong to the previous
  day (is_late_night=True). The cutoff moves the date only, never the clock.
- Weeks start on Sunday and are counted from Jan 1 of the day's own year;
  the partial first week is W01:

      start_wd = isoweekday(Jan 1) % 7          # Sunday -> 0
      week     = (days_since_jan1 + start_wd) // 7 + 1

  This is NOT ISO-8601 week numbering and must not be replaced by it.

Pure functions only: no DB, no clock unless the caller omits `now`.

Public API
----------
resolve_date(instant, respect_cutoff, config)   -> DateInfo
today_info(now, config)                         -> DateInfo
day_info_for_key(day_key, config)               -> DateInfo
sunday_week_number(day) / week_key_for(day)     -> int / str
month_key_for(day)                              -> str
week_bounds(week_key)                           -> (first_day, last_day)
previous_week_key(week_key)                     -> str
parse_day_key / parse_week_key / parse_month_key
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from diary.core.config import settings
from diary.core.errors import (
    InvalidDayKeyError,
    InvalidInstantError,
    InvalidMonthKeyError,
    InvalidWeekKeyError,
)


_DAY_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_WEEK_KEY_RE = re.compile(r"^(\d{4})-W(\d{2})$")
_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")

# Keys must leave room for a neighbouring day or week on either side.
MIN_YEAR = 2
MAX_YEAR = 9998

# Monday-first, matching date.weekday()
_WEEKDAYS_JA = ("月", "火", "水", "木", "金", "土", "日")


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CalendarConfig:
    time_zone: str
    late_night_cutoff_hour: int

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    @classmethod
    def from_settings(cls) -> "CalendarConfig":
        return cls(
            time_zone=settings.TIMEZONE,
            late_night_cutoff_hour=settings.LATE_NIGHT_CUTOFF_HOUR,
        )


@dataclass(frozen=True)
class DateInfo:
    local: datetime          # the instant in the configured zone, not shifted
    day: date                # date basis after the cutoff
    day_key: str
    display_label: str
    week_key: str
    is_late_night: bool

    @property
    def month_key(self) -> str:
        return month_key_for(self.day)


# ---------------------------------------------------------------------------
# Key formatting
# ---------------------------------------------------------------------------

def sunday_week_number(day: date) -> int:
    start_of_year = date(day.year, 1, 1)
    start_of_year_weekday = start_of_year.isoweekday() % 7
    diff_in_days = (day - start_of_year).days
    return (diff_in_days + start_of_year_weekday) // 7 + 1


def week_key_for(day: date) -> str:
    return f"{day.year:04d}-W{sunday_week_number(day):02d}"


def month_key_for(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def display_label_for(day: date) -> str:
    return f"{day.year}年{day.month}月{day.day}日({_WEEKDAYS_JA[day.weekday()]})"


# ---------------------------------------------------------------------------
# Key parsing
# ---------------------------------------------------------------------------

def parse_day_key(value: str) -> date:
    if not isinstance(value, str) or not _DAY_KEY_RE.match(value):
        raise InvalidDayKeyError(value)
    try:
        day = date.fromisoformat(value)
    except ValueError:
        raise InvalidDayKeyError(value) from None
    if not MIN_YEAR <= day.year <= MAX_YEAR:
        raise InvalidDayKeyError(value)
    return day


def parse_week_key(value: str) -> tuple[int, int]:
    match = _WEEK_KEY_RE.match(value) if isinstance(value, str) else None
    if not match:
        raise InvalidWeekKeyError(value)
    year, week = int(match.group(1)), int(match.group(2))
    if not MIN_YEAR <= year <= MAX_YEAR or week < 1 or week > sunday_week_number(date(year, 12, 31)):
        raise InvalidWeekKeyError(value)
    return year, week


def parse_month_key(value: str) -> tuple[int, int]:
    match = _MONTH_KEY_RE.match(value) if isinstance(value, str) else None
    if not match:
        raise InvalidMonthKeyError(value)
    year, month = int(match.group(1)), int(match.group(2))
    if not MIN_YEAR <= year <= MAX_YEAR or not 1 <= month <= 12:
        raise InvalidMonthKeyError(value)
    return year, month


def week_bounds(week_key: str) -> tuple[date, date]:
    """First and last calendar day of a week bucket, clamped to its year."""
    year, week = parse_week_key(week_key)
    start_of_year = date(year, 1, 1)
    offset = start_of_year.isoweekday() % 7
    first = start_of_year + timedelta(days=7 * (week - 1) - offset)
    last = first + timedelta(days=6)
    return max(first, start_of_year), min(last, date(year, 12, 31))


def previous_week_key(week_key: str) -> str:
    first, _ = week_bounds(week_key)
    return week_key_for(first - timedelta(days=1))


def day_keys_between(first: date, last: date) -> list[str]:
    return [(first + timedelta(days=i)).isoformat() for i in range((last - first).days + 1)]


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

def resolve_date(
    instant: datetime,
    respect_cutoff: bool = True,
    config: Optional[CalendarConfig] = None,
) -> DateInfo:
    """Bucket an aware instant into its day / week, honouring the cutoff."""
    if not isinstance(instant, datetime) or instant.utcoffset() is None:
        raise InvalidInstantError(instant)
    cfg = config or CalendarConfig.from_settings()

    try:
        local = instant.astimezone(cfg.zone)
        basis = local.date()
        is_late_night = False
        if respect_cutoff and local.hour < cfg.late_night_cutoff_hour:
            basis = basis - timedelta(days=1)
            is_late_night = True
    except OverflowError:
        raise InvalidInstantError(instant) from None
    if not MIN_YEAR <= basis.year <= MAX_YEAR:
        raise InvalidInstantError(instant)

    return DateInfo(
        local=local,
        day=basis,
        day_key=basis.isoformat(),
        display_label=display_label_for(basis),
        week_key=week_key_for(basis),
        is_late_night=is_late_night,
    )


def today_info(
    now: Optional[datetime] = None,
    config: Optional[CalendarConfig] = None,
) -> DateInfo:
    return resolve_date(now or datetime.now(tz=timezone.utc), config=config)


def day_info_for_key(day_key: str, config: Optional[CalendarConfig] = None) -> DateInfo:
    """Derived fields of an existing day key (noon local, cutoff ignored)."""
    cfg = config or CalendarConfig.from_settings()
    day = parse_day_key(day_key)
    noon = datetime.combine(day, time(12, 0), tzinfo=cfg.zone)
    return resolve_date(noon, respect_cutoff=False, config=cfg)
