"""Session model for authenticated staff sessions.

Sessions are database-backed: the client only ever holds an opaque token,
and role/event access is re-derived from the database on each request.
"""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import INET, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carshow.db.models.base import (
    Base,
    OptionalTimestampTZ,
    TimestampTZ,
    UUIDPrimaryKey,
)


class Session(Base):
    """Login session bound to exactly one admin user.

    Only the SHA-256 hash of the token is stored. A session is created at
    login and invalidated at logout or expiry; nothing else changes it.
    """

    __tablename__ = "sessions"

    session_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    admin_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("admin_users.admin_user_id", ondelete="CASCADE"),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at: Mapped[TimestampTZ]
    revoked_at: Mapped[OptionalTimestampTZ]

    ip_address: Mapped[str | None] = mapped_column(INET, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)

    admin_user: Mapped[AdminUser] = relationship(  # noqa: F821
        "AdminUser",
        foreign_keys=[admin_user_id],
        lazy="select",
    )

    __table_args__ = (
        Index("ix_sessions_admin_user_id", "admin_user_id"),
        Index("ix_sessions_expires_at", "expires_at"),
    )

    @property
    def is_expired(self) -> bool:
        """Check if the session has expired."""
        from datetime import UTC, datetime

        return datetime.now(UTC) > self.expires_at

    @property
    def is_revoked(self) -> bool:
        """Check if the session has been revoked."""
        return self.revoked_at is not None

    @property
    def is_valid(self) -> bool:
        """Check if the session is still valid for use."""
        return self.is_active and not self.is_expired and not self.is_revoked
