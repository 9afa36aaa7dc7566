"""Pydantic schemas for staff authentication endpoints."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from carshow.db.models.base import EventRole


class LoginRequest(BaseModel):
    """Credentials for staff login."""

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=1024)

    model_config = ConfigDict(extra="forbid")


class EventRoleEntry(BaseModel):
    """The principal's explicit role on one event."""

    event_id: UUID
    event_role: EventRole


class PrincipalResponse(BaseModel):
    """The authenticated staff member."""

    admin_user_id: UUID
    email: str
    full_name: str | None = None
    global_role: str
    full_access: bool = Field(
        False, description="Global role resolves to event_admin on every event"
    )
    event_roles: list[EventRoleEntry] = Field(default_factory=list)


class LoginResponse(BaseModel):
    """Result of a successful login.

    The token is also set as an httponly cookie; API clients may send it in
    the X-Session-Token or Authorization: Bearer header instead.
    """

    access_token: str
    expires_at: datetime
    principal: PrincipalResponse


class LogoutResponse(BaseModel):
    """Result of a logout."""

    success: bool
    revoked: bool = Field(False, description="Whether an active session was revoked")
