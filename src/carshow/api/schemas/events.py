"""Pydantic schemas for event staff endpoints.

Registration listing, review and gate transitions, audit history and
staff assignment.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from carshow.db.models.base import (
    AuditOutcome,
    CheckInStatus,
    EventRole,
    InspectionStatus,
    RegistrationStatus,
)

# -----------------------------------------------------------------------------
# Events and registrations
# -----------------------------------------------------------------------------


class EventResponse(BaseModel):
    """An event as seen by its staff."""

    model_config = ConfigDict(from_attributes=True)

    event_id: UUID
    name: str
    event_date: date | None = None
    location: str | None = None
    is_active: bool


class RegistrationResponse(BaseModel):
    """One registration with its review and gate state."""

    model_config = ConfigDict(from_attributes=True)

    registration_id: UUID
    event_id: UUID
    created_at: datetime
    full_name: str
    email: str | None = None
    country_code: str | None = None
    phone_number: str | None = None
    car_make: str | None = None
    car_model: str | None = None
    car_year: int | None = None
    status: RegistrationStatus
    registration_number: str | None = None
    rejection_reason: str | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    check_in_status: CheckInStatus
    inspection_status: InspectionStatus
    checked_in_at: datetime | None = None


class RegistrationStatsResponse(BaseModel):
    """Registration counts by status."""

    model_config = ConfigDict(from_attributes=True)

    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


class RegistrationListResponse(BaseModel):
    """Registrations of an event, newest first."""

    items: list[RegistrationResponse]
    stats: RegistrationStatsResponse


class GateScanResponse(BaseModel):
    """Gate search matches."""

    query: str
    items: list[RegistrationResponse]


class RegistrationUpdateRequest(BaseModel):
    """Body for editing participant and vehicle details.

    Only the fields sent are changed. Review and gate state cannot be set
    here; unknown fields are rejected.
    """

    full_name: str | None = Field(None, min_length=1, max_length=255)
    email: str | None = Field(None, max_length=255)
    country_code: str | None = Field(None, max_length=8)
    phone_number: str | None = Field(None, max_length=32)
    car_make: str | None = Field(None, max_length=100)
    car_model: str | None = Field(None, max_length=100)
    car_year: int | None = Field(None, ge=1900, le=2100)

    model_config = ConfigDict(extra="forbid")


# -----------------------------------------------------------------------------
# Transitions
# -----------------------------------------------------------------------------


class RejectRequest(BaseModel):
    """Body for a review or gate rejection."""

    reason: str | None = Field(None, max_length=2000)

    model_config = ConfigDict(extra="forbid")


class CheckInRequest(BaseModel):
    """Body for a gate check-in."""

    verified_items: list[str] = Field(
        default_factory=list,
        max_length=50,
        description="Safety checklist items the gate verified",
    )

    model_config = ConfigDict(extra="forbid")


class TransitionResponse(BaseModel):
    """Outcome of a transition.

    ``status_changed`` tells whether the primary status actually changed;
    ``warning`` is NOTIFY_FAILED when the change is committed but the
    participant could not be notified.
    """

    registration_id: UUID
    action: str
    status_changed: bool
    previous: dict[str, Any]
    current: dict[str, Any]
    registration_number: str | None = None
    warning: str | None = None


# -----------------------------------------------------------------------------
# Audit history
# -----------------------------------------------------------------------------


class AuditEntryResponse(BaseModel):
    """One audit entry."""

    model_config = ConfigDict(from_attributes=True)

    entry_id: UUID
    created_at: datetime
    actor_id: UUID | None = None
    action: str
    outcome: AuditOutcome
    details: dict[str, Any] | None = None
    entry_hash: str


class AuditHistoryResponse(BaseModel):
    """Audit history of one registration, newest first."""

    registration_id: UUID
    items: list[AuditEntryResponse]


# -----------------------------------------------------------------------------
# Staff
# -----------------------------------------------------------------------------


class StaffMemberResponse(BaseModel):
    """An admin user and their role on the event."""

    model_config = ConfigDict(from_attributes=True)

    admin_user_id: UUID
    email: str
    full_name: str | None = None
    global_role: str
    is_active: bool
    event_role: EventRole | None = None


class StaffListResponse(BaseModel):
    """Staff of an event."""

    items: list[StaffMemberResponse]


class AssignStaffRequest(BaseModel):
    """Body for assigning a role on the event."""

    event_role: EventRole

    model_config = ConfigDict(extra="forbid")
