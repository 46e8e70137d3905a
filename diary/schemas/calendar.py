"""
Calendar schemas.

GET /calendar/today             → DateInfoResponse
GET /calendar/resolve           → DateInfoResponse
GET /calendar/weeks/{week_key}  → WeekBoundsResponse
"""
from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


class DateInfoResponse(BaseModel):
    day_key: str = Field(examples=["2024-03-09"])
    display_label: str = Field(examples=["2024年3月9日(土)"])
    week_key: str = Field(
        examples=["2024-W10"],
        description="Sunday-first week of the year; W01 is the partial week holding Jan 1.",
    )
    month_key: str = Field(examples=["2024-03"])
    is_late_night: bool = Field(
        description="True when the instant fell before the cutoff hour and was moved to the previous day."
    )
    local_time: str = Field(description="The instant in the configured zone, ISO 8601.")
    time_zone: str


class WeekBoundsResponse(BaseModel):
    week_key: str
    first_day: date
    last_day: date
    day_keys: list[str]
