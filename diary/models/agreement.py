from datetime import datetime
from sqlalchemy import Integer, String, Text, Boolean, DateTime, Enum, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from diary.db.base import Base


class AgreementStatus(str, enum.Enum):
    active = "active"
    archived = "archived"


class Agreement(Base):
    """A shared rule the couple agreed on. Archived, never deleted."""

    __tablename__ = "agreements"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    order: Mapped[int] = mapped_column("sort_order", Integer, nullable=False, default=100)
    status: Mapped[str] = mapped_column(
        Enum(AgreementStatus, name="agreement_status_enum"),
        nullable=False, default=AgreementStatus.active,
    )
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
