"""Competition rounds of an event."""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution
from datetime import date  # noqa: TC003 - required at runtime for SQLAlchemy type resolution

from sqlalchemy import Date, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from carshow.db.models.base import (
    Base,
    RoundStatus,
    TimestampTZ,
    UUIDPrimaryKey,
    pg_enum,
)


class Round(Base):
    """One round of an event, shown in ``round_order`` (1 is first).

    Orders are kept dense per event by ``carshow.services.rounds``; they are
    not unique in the schema so a reorder can be written row by row.
    """

    __tablename__ = "rounds"

    round_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    event_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("events.event_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    round_order: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[RoundStatus] = mapped_column(
        pg_enum(RoundStatus, "round_status"),
        nullable=False,
        default=RoundStatus.PENDING,
    )
    round_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (Index("ix_rounds_event_order", "event_id", "round_order"),)

    def snapshot(self) -> dict[str, str | int | None]:
        """Fields captured in audit before/after payloads."""
        return {
            "name": self.name,
            "round_order": self.round_order,
            "status": self.status.value if self.status else None,
            "round_date": self.round_date.isoformat() if self.round_date else None,
        }
