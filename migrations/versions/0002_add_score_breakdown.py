"""add days.score_breakdown

Revision ID: 0002
Revises: 0001
Create Date: 2024-04-14

Per-role score totals as JSON text. Existing rows stay NULL; roll-ups
rebuild their breakdown from day_entries on first read.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "days",
        sa.Column(
            "score_breakdown",
            sa.Text(),
            nullable=True,
            comment="JSON {role: {sum, count, average}}; NULL on legacy rows",
        ),
    )


def downgrade() -> None:
    op.drop_column("days", "score_breakdown")
