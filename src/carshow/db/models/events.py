"""Events and participant registrations.

Registrations are created by the public submission flow and change state
only through ``carshow.services.lifecycle``. They are never deleted.
"""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution
from datetime import date  # noqa: TC003 - required at runtime for SQLAlchemy type resolution

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carshow.db.models.base import (
    Base,
    CheckInStatus,
    InspectionStatus,
    OptionalTimestampTZ,
    RegistrationStatus,
    TimestampTZ,
    UUIDPrimaryKey,
    pg_enum,
)


class Event(Base):
    """A car show event that participants register for."""

    __tablename__ = "events"

    event_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    event_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    registrations: Mapped[list[Registration]] = relationship(
        "Registration",
        back_populates="event",
        lazy="noload",
    )


class Registration(Base):
    """One participant and vehicle entered into one event.

    ``registration_number`` is assigned on first approval and kept through
    later rejections, so a re-approval reuses it.
    """

    __tablename__ = "registrations"

    registration_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    event_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("events.event_id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Participant
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    country_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Vehicle
    car_make: Mapped[str | None] = mapped_column(String(100), nullable=True)
    car_model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    car_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Review state
    status: Mapped[RegistrationStatus] = mapped_column(
        pg_enum(RegistrationStatus, "registration_status"),
        nullable=False,
        default=RegistrationStatus.PENDING,
    )
    registration_number: Mapped[str | None] = mapped_column(
        String(32), unique=True, nullable=True
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[OptionalTimestampTZ]
    rejected_at: Mapped[OptionalTimestampTZ]

    # Gate state
    check_in_status: Mapped[CheckInStatus] = mapped_column(
        pg_enum(CheckInStatus, "check_in_status"),
        nullable=False,
        default=CheckInStatus.NOT_CHECKED_IN,
    )
    inspection_status: Mapped[InspectionStatus] = mapped_column(
        pg_enum(InspectionStatus, "inspection_status"),
        nullable=False,
        default=InspectionStatus.NONE,
    )
    checked_in_at: Mapped[OptionalTimestampTZ]

    event: Mapped[Event] = relationship(
        "Event",
        back_populates="registrations",
        lazy="noload",
    )

    __table_args__ = (
        Index("ix_registrations_event_created", "event_id", "created_at"),
        Index("ix_registrations_event_status", "event_id", "status"),
    )

    def snapshot(self) -> dict[str, str | None]:
        """State fields captured in audit before/after payloads."""
        return {
            "status": self.status.value if self.status else None,
            "check_in_status": self.check_in_status.value if self.check_in_status else None,
            "inspection_status": (
                self.inspection_status.value if self.inspection_status else None
            ),
            "registration_number": self.registration_number,
            "rejection_reason": self.rejection_reason,
        }
