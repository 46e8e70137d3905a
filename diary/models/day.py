"""
DayRecord: one row per calendar day (the day's "thread").

Created on first access (create-if-absent), mutated by entry refolds and
thanks increments, never deleted.

score_breakdown: JSON-encoded {role: {sum, count, average}} stored as Text.
NULL on rows written before breakdown tracking existed (revision 0002);
roll-ups rebuild those lazily from day_entries.

Thanks are kept as one integer column per role so an increment is a single
`col = col + 1` UPDATE.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, Float, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from diary.db.base import Base
from diary.models.role import Role


class DayRecord(Base):
    __tablename__ = "days"

    day_key: Mapped[str] = mapped_column(String(10), primary_key=True)
    display_label: Mapped[str] = mapped_column(String(64), nullable=False)
    week_key: Mapped[str] = mapped_column(String(8), nullable=False, index=True)
    time_zone: Mapped[str] = mapped_column(String(64), nullable=False)

    score_sum: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score_average: Mapped[float | None] = mapped_column(Float, nullable=True)
    score_breakdown: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON {role: {sum, count, average}}; NULL on legacy rows",
    )

    thanks_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    thanks_master: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    thanks_partner: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_aggregate_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def thanks_for(self, role: Role) -> int:
        if role == Role.master:
            return self.thanks_master or 0
        return self.thanks_partner or 0

    @property
    def thanks_breakdown(self) -> dict[str, int]:
        return {
            Role.master.value: self.thanks_master or 0,
            Role.partner.value: self.thanks_partner or 0,
        }


# Column holding each role's thanks counter.
THANKS_COLUMNS = {
    Role.master: DayRecord.thanks_master,
    Role.partner: DayRecord.thanks_partner,
}
