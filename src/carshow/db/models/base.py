"""Base model definitions and common types.

This module provides:
- SQLAlchemy declarative base with naming conventions
- Common annotated column types
- Enum types used across multiple models
"""

import enum
import uuid
from datetime import datetime
from typing import Annotated

from sqlalchemy import DateTime, Enum, MetaData, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, mapped_column, registry

# Naming convention for constraints ensures consistent migration generation.
# See: https://alembic.sqlalchemy.org/en/latest/naming.html
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)

type_registry = registry()

# UUID primary key with server-side default generation
UUIDPrimaryKey = Annotated[
    uuid.UUID,
    mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
]

# Timestamp with timezone, defaults to now
TimestampTZ = Annotated[
    datetime,
    mapped_column(DateTime(timezone=True), server_default=text("now()")),
]

OptionalTimestampTZ = Annotated[
    datetime | None,
    mapped_column(DateTime(timezone=True), nullable=True),
]

ShortString = Annotated[str, mapped_column(String(100))]
MediumString = Annotated[str, mapped_column(String(255))]


class Base(DeclarativeBase):
    """Declarative base for all carshow models."""

    metadata = metadata
    registry = type_registry


def pg_enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    """PostgreSQL enum column type persisted by member value."""
    return Enum(
        enum_cls,
        name=name,
        create_constraint=True,
        values_callable=lambda members: [m.value for m in members],
    )


# =============================================================================
# Common Enums
# =============================================================================


class GlobalRole(str, enum.Enum):
    """Account-wide role of an admin user.

    Which of these grant event_admin on every event is configured through
    ``AccessSettings.full_access_roles`` (super_admin, admin and management
    by default).
    """

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MANAGEMENT = "management"
    ORGANIZER = "organizer"
    STAFF = "staff"
    VIEWER = "viewer"


class EventRole(str, enum.Enum):
    """Role a principal holds on one specific event.

    Values:
        EVENT_ADMIN: Every capability on the event
        APPROVER: Reviews registrations (approve/reject/edit)
        DATA_ENTRY: Edits registration data
        GATE: Checks participants in at the venue
        VIEWER: Read-only access
    """

    EVENT_ADMIN = "event_admin"
    APPROVER = "approver"
    DATA_ENTRY = "data_entry"
    GATE = "gate"
    VIEWER = "viewer"


class RegistrationStatus(str, enum.Enum):
    """Primary review status of a registration."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CheckInStatus(str, enum.Enum):
    """Venue check-in sub-state."""

    NOT_CHECKED_IN = "not_checked_in"
    CHECKED_IN = "checked_in"


class InspectionStatus(str, enum.Enum):
    """Same-day gate inspection sub-state.

    Values:
        NONE: Not inspected yet
        PASSED: Cleared at the gate
        REJECTED: Refused entry at the gate (primary status unchanged)
    """

    NONE = "none"
    PASSED = "passed"
    REJECTED = "rejected"


class RoundStatus(str, enum.Enum):
    """Progress of a competition round."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


class AuditOutcome(str, enum.Enum):
    """Outcome recorded on an audit entry."""

    SUCCESS = "success"
    FAILED = "failed"
    WARNING = "warning"
