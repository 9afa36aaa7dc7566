"""Staff accounts and per-event staff assignments."""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carshow.db.models.base import (
    Base,
    EventRole,
    OptionalTimestampTZ,
    TimestampTZ,
    UUIDPrimaryKey,
    pg_enum,
)


class AdminUser(Base):
    """Back-office account (admin, organizer or event staff).

    Accounts are soft-deactivated through ``is_active`` rather than deleted
    so that audit entries keep a valid actor reference.
    """

    __tablename__ = "admin_users"

    admin_user_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # bcrypt hash
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # One of GlobalRole; stored as text so new account types need no migration
    global_role: Mapped[str] = mapped_column(String(50), nullable=False, default="staff")

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    last_login_at: Mapped[OptionalTimestampTZ]

    event_assignments: Mapped[list[EventStaffAssignment]] = relationship(
        "EventStaffAssignment",
        back_populates="admin_user",
        cascade="all, delete-orphan",
    )


class EventStaffAssignment(Base):
    """Grants one admin user a role on one event."""

    __tablename__ = "event_staff_assignments"

    assignment_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    event_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("events.event_id", ondelete="CASCADE"),
        nullable=False,
    )
    admin_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("admin_users.admin_user_id", ondelete="CASCADE"),
        nullable=False,
    )
    event_role: Mapped[EventRole] = mapped_column(
        pg_enum(EventRole, "event_role"),
        nullable=False,
    )

    admin_user: Mapped[AdminUser] = relationship(
        "AdminUser",
        back_populates="event_assignments",
    )

    __table_args__ = (
        UniqueConstraint("event_id", "admin_user_id", name="uq_event_staff_event_user"),
        Index("ix_event_staff_assignments_admin_user_id", "admin_user_id"),
    )
