"""initial schema

Revision ID: 0001
Revises:
Create Date: 2024-01-06 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    role_enum = sa.Enum("master", "partner", name="participant_role_enum")
    role_enum.create(op.get_bind(), checkfirst=True)

    agreement_status_enum = sa.Enum("active", "archived", name="agreement_status_enum")
    agreement_status_enum.create(op.get_bind(), checkfirst=True)

    # --- days ---
    op.create_table(
        "days",
        sa.Column("day_key", sa.String(10), nullable=False),
        sa.Column("display_label", sa.String(64), nullable=False),
        sa.Column("week_key", sa.String(8), nullable=False),
        sa.Column("time_zone", sa.String(64), nullable=False),
        sa.Column("score_sum", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("score_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("score_average", sa.Float(), nullable=True),
        sa.Column("thanks_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("thanks_master", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("thanks_partner", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_aggregate_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("day_key"),
    )
    op.create_index("ix_days_week_key", "days", ["week_key"])

    # --- day_entries ---
    op.create_table(
        "day_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("day_key", sa.String(10), sa.ForeignKey("days.day_key"), nullable=False),
        sa.Column("role", sa.Enum(
            "master", "partner", name="participant_role_enum", create_type=False,
        ), nullable=False),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("note", sa.Text(), nullable=False, server_default=""),
        sa.Column("author_email", sa.String(255), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("day_key", "role", name="uq_day_entry_day_role"),
    )
    op.create_index("ix_day_entries_id", "day_entries", ["id"])
    op.create_index("ix_day_entries_day_key", "day_entries", ["day_key"])

    # --- agreements ---
    op.create_table(
        "agreements",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False, server_default=""),
        sa.Column("pinned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("status", sa.Enum(
            "active", "archived", name="agreement_status_enum", create_type=False,
        ), nullable=False, server_default="active"),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("updated_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    # --- weekly_comments ---
    op.create_table(
        "weekly_comments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("week_key", sa.String(8), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("truncated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_weekly_comments_id", "weekly_comments", ["id"])
    op.create_index("ix_weekly_comments_week_key", "weekly_comments", ["week_key"], unique=True)


def downgrade() -> None:
    op.drop_table("weekly_comments")
    op.drop_table("agreements")
    op.drop_table("day_entries")
    op.drop_table("days")

    op.execute("DROP TYPE IF EXISTS agreement_status_enum")
    op.execute("DROP TYPE IF EXISTS participant_role_enum")
