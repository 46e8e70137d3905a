from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from diary.db.base import Base
from diary.models.role import Role


class DayEntry(Base):
    """One participant's self-report for one day. Overwritten on resubmission."""

    __tablename__ = "day_entries"
    __table_args__ = (UniqueConstraint("day_key", "role", name="uq_day_entry_day_role"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    day_key: Mapped[str] = mapped_column(
        String(10), ForeignKey("days.day_key"), nullable=False, index=True
    )
    role: Mapped[Role] = mapped_column(Enum(Role, name="participant_role_enum"), nullable=False)
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    author_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
