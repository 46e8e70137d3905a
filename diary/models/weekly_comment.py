"""
WeeklyComment: the reflection text produced once a week by the external
text generator, after truncation. One row per week_key; re-running the
weekly job overwrites it.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, Boolean, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from diary.db.base import Base


class WeeklyComment(Base):
    __tablename__ = "weekly_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    week_key: Mapped[str] = mapped_column(String(8), nullable=False, unique=True, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    truncated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
