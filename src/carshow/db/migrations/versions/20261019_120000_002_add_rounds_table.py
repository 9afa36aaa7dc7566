"""Add rounds table for competition rounds.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 12:00:00.000000+00:00

Creates:
- round_status enum type
- rounds (ordered competition rounds of an event)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

round_status = postgresql.ENUM(
    "pending", "active", "completed", name="round_status", create_type=False
)


def upgrade() -> None:
    """Apply migration: Add rounds table."""
    round_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "rounds",
        sa.Column(
            "round_id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("round_order", sa.Integer(), nullable=False),
        sa.Column("status", round_status, nullable=False, server_default="pending"),
        sa.Column("round_date", sa.Date(), nullable=True),
        sa.PrimaryKeyConstraint("round_id", name=op.f("pk_rounds")),
        sa.ForeignKeyConstraint(
            ["event_id"],
            ["events.event_id"],
            name=op.f("fk_rounds_event_id_events"),
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_rounds_event_order", "rounds", ["event_id", "round_order"])


def downgrade() -> None:
    """Revert migration: Drop rounds table."""
    op.drop_index("ix_rounds_event_order", table_name="rounds")
    op.drop_table("rounds")
    round_status.drop(op.get_bind(), checkfirst=True)
