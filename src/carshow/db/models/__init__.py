"""SQLAlchemy ORM models for carshow.

This package contains all database models organized by domain:
- base: Common metadata, column types and enums
- auth: Admin users and per-event staff assignments
- events: Events and participant registrations
- rounds: Competition rounds of an event
- session: Login sessions
- audit: Audit trail entries
"""

from carshow.db.models.audit import AuditEntry
from carshow.db.models.auth import AdminUser, EventStaffAssignment
from carshow.db.models.base import (
    AuditOutcome,
    Base,
    CheckInStatus,
    EventRole,
    GlobalRole,
    InspectionStatus,
    RegistrationStatus,
    RoundStatus,
    metadata,
)
from carshow.db.models.events import Event, Registration
from carshow.db.models.rounds import Round
from carshow.db.models.session import Session

__all__ = [
    "AdminUser",
    "AuditEntry",
    "AuditOutcome",
    "Base",
    "CheckInStatus",
    "Event",
    "EventRole",
    "EventStaffAssignment",
    "GlobalRole",
    "InspectionStatus",
    "Registration",
    "RegistrationStatus",
    "Round",
    "RoundStatus",
    "Session",
    "metadata",
]
