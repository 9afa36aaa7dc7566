"""Initial schema.

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

Creates:
- admin_users, event_staff_assignments (staff and per-event roles)
- events, registrations (review and gate workflow)
- sessions (server-side login sessions)
- audit_entries (append-only audit trail)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENUM_TYPES = {
    "event_role": ("event_admin", "approver", "data_entry", "gate", "viewer"),
    "registration_status": ("pending", "approved", "rejected"),
    "check_in_status": ("not_checked_in", "checked_in"),
    "inspection_status": ("none", "passed", "rejected"),
    "audit_outcome": ("success", "failed", "warning"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUM_TYPES[name], name=name, create_type=False)


def _uuid_pk(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    """Apply migration: initial schema."""
    for name in ENUM_TYPES:
        _enum(name).create(op.get_bind(), checkfirst=True)

    op.create_table(
        "admin_users",
        _uuid_pk("admin_user_id"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("global_role", sa.String(50), nullable=False, server_default="staff"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("admin_user_id", name=op.f("pk_admin_users")),
        sa.UniqueConstraint("email", name=op.f("uq_admin_users_email")),
    )

    op.create_table(
        "events",
        _uuid_pk("event_id"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("event_date", sa.Date(), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.PrimaryKeyConstraint("event_id", name=op.f("pk_events")),
    )

    op.create_table(
        "event_staff_assignments",
        _uuid_pk("assignment_id"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("admin_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_role", _enum("event_role"), nullable=False),
        sa.PrimaryKeyConstraint("assignment_id", name=op.f("pk_event_staff_assignments")),
        sa.UniqueConstraint("event_id", "admin_user_id", name="uq_event_staff_event_user"),
        sa.ForeignKeyConstraint(
            ["event_id"],
            ["events.event_id"],
            name=op.f("fk_event_staff_assignments_event_id_events"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["admin_user_id"],
            ["admin_users.admin_user_id"],
            name=op.f("fk_event_staff_assignments_admin_user_id_admin_users"),
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_event_staff_assignments_admin_user_id",
        "event_staff_assignments",
        ["admin_user_id"],
        unique=False,
    )

    op.create_table(
        "registrations",
        _uuid_pk("registration_id"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("country_code", sa.String(8), nullable=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("car_make", sa.String(100), nullable=True),
        sa.Column("car_model", sa.String(100), nullable=True),
        sa.Column("car_year", sa.Integer(), nullable=True),
        sa.Column(
            "status",
            _enum("registration_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("registration_number", sa.String(32), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "check_in_status",
            _enum("check_in_status"),
            nullable=False,
            server_default="not_checked_in",
        ),
        sa.Column(
            "inspection_status",
            _enum("inspection_status"),
            nullable=False,
            server_default="none",
        ),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("registration_id", name=op.f("pk_registrations")),
        sa.UniqueConstraint(
            "registration_number", name=op.f("uq_registrations_registration_number")
        ),
        sa.ForeignKeyConstraint(
            ["event_id"],
            ["events.event_id"],
            name=op.f("fk_registrations_event_id_events"),
            ondelete="RESTRICT",
        ),
    )
    op.create_index(
        "ix_registrations_event_created", "registrations", ["event_id", "created_at"]
    )
    op.create_index("ix_registrations_event_status", "registrations", ["event_id", "status"])

    op.create_table(
        "sessions",
        _uuid_pk("session_id"),
        _timestamp("created_at"),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("admin_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("expires_at"),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ip_address", postgresql.INET(), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("session_id", name=op.f("pk_sessions")),
        sa.UniqueConstraint("token_hash", name=op.f("uq_sessions_token_hash")),
        sa.ForeignKeyConstraint(
            ["admin_user_id"],
            ["admin_users.admin_user_id"],
            name=op.f("fk_sessions_admin_user_id_admin_users"),
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_sessions_admin_user_id", "sessions", ["admin_user_id"])
    op.create_index("ix_sessions_expires_at", "sessions", ["expires_at"])

    op.create_table(
        "audit_entries",
        _uuid_pk("entry_id"),
        _timestamp("created_at"),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("resource_type", sa.String(50), nullable=False),
        sa.Column("resource_id", sa.String(255), nullable=False),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("outcome", _enum("audit_outcome"), nullable=False),
        sa.Column("entry_hash", sa.String(64), nullable=False),
        sa.PrimaryKeyConstraint("entry_id", name=op.f("pk_audit_entries")),
    )
    op.create_index(
        "ix_audit_entries_resource", "audit_entries", ["resource_type", "resource_id"]
    )
    op.create_index("ix_audit_entries_actor_id", "audit_entries", ["actor_id"])
    op.create_index("ix_audit_entries_created_at", "audit_entries", ["created_at"])


def downgrade() -> None:
    """Revert migration: drop all tables and enum types."""
    op.drop_table("audit_entries")
    op.drop_table("sessions")
    op.drop_table("registrations")
    op.drop_table("event_staff_assignments")
    op.drop_table("events")
    op.drop_table("admin_users")

    for name in reversed(list(ENUM_TYPES)):
        _enum(name).drop(op.get_bind(), checkfirst=True)
