"""Append-only audit trail of privileged actions."""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution

from sqlalchemy import Index, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from carshow.db.models.base import (
    AuditOutcome,
    Base,
    TimestampTZ,
    UUIDPrimaryKey,
    pg_enum,
)


class AuditEntry(Base):
    """Immutable record of one attempted privileged action.

    Written for successes and denials alike. There is no update or delete
    path; ``entry_hash`` is a SHA-256 digest of the canonical content so
    later edits made outside the application are detectable.
    """

    __tablename__ = "audit_entries"

    entry_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    # Null for system actions
    actor_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    action: Mapped[str] = mapped_column(String(100), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # before/after snapshots plus action-specific context
    details: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    outcome: Mapped[AuditOutcome] = mapped_column(
        pg_enum(AuditOutcome, "audit_outcome"),
        nullable=False,
    )

    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        Index("ix_audit_entries_resource", "resource_type", "resource_id"),
        Index("ix_audit_entries_actor_id", "actor_id"),
        Index("ix_audit_entries_created_at", "created_at"),
    )
