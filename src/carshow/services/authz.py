"""Event-scoped authorization.

This module provides:
- EventCapability, the closed set of things staff can do on an event
- CAPABILITY_MATRIX, the single role x capability decision table
- The access error taxonomy (NOT_AUTHENTICATED, NO_EVENT_ACCESS, FORBIDDEN)
- EventAccessService, which resolves a principal's effective role on an
  event and enforces capabilities, auditing every denial

Roles and event membership are always read from the database; nothing the
client sends is trusted for authorization.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

from carshow.core.config import DEFAULT_FULL_ACCESS_ROLES
from carshow.db.models.base import AuditOutcome, EventRole

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from carshow.services.audit_log import AuditLogger

logger = logging.getLogger(__name__)

__all__ = [
    "CAPABILITY_MATRIX",
    "AccessError",
    "EventAccessService",
    "EventCapability",
    "EventRole",
    "ForbiddenError",
    "NoEventAccessError",
    "NotAuthenticatedError",
    "Principal",
    "authorize",
]


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------


class EventCapability(str, Enum):
    """Actions that can be performed on an event's data."""

    VIEW = "view"
    APPROVE = "approve"
    REJECT = "reject"
    EDIT_REGISTRATION = "edit_registration"
    GATE_SCAN = "gate_scan"
    MANAGE_ROUNDS = "manage_rounds"
    MANAGE_STAFF = "manage_staff"


# event_admin holds everything; the other roles only share VIEW.
CAPABILITY_MATRIX: dict[EventRole, frozenset[EventCapability]] = {
    EventRole.EVENT_ADMIN: frozenset(EventCapability),
    EventRole.APPROVER: frozenset(
        [
            EventCapability.VIEW,
            EventCapability.APPROVE,
            EventCapability.REJECT,
            EventCapability.EDIT_REGISTRATION,
        ]
    ),
    EventRole.DATA_ENTRY: frozenset(
        [
            EventCapability.VIEW,
            EventCapability.EDIT_REGISTRATION,
        ]
    ),
    EventRole.GATE: frozenset(
        [
            EventCapability.VIEW,
            EventCapability.GATE_SCAN,
        ]
    ),
    EventRole.VIEWER: frozenset([EventCapability.VIEW]),
}


def authorize(role: EventRole | str, capability: EventCapability | str) -> bool:
    """Decide whether a role holds a capability.

    Pure table lookup. Roles or capabilities that are not in the table
    are denied.

    Args:
        role: Effective event role.
        capability: Requested capability.

    Returns:
        True if the matrix grants the capability to the role.
    """
    granted = CAPABILITY_MATRIX.get(role)  # type: ignore[call-overload]
    if granted is None:
        return False
    return capability in granted


# ---------------------------------------------------------------------------
# Principal
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated admin user, as resolved from a session.

    Attributes:
        admin_user_id: Account identifier.
        email: Login email.
        global_role: Account-wide role (see GlobalRole).
        is_active: Whether the account is enabled.
        full_name: Display name, if set.
    """

    admin_user_id: UUID
    email: str
    global_role: str
    is_active: bool = True
    full_name: str | None = None


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class AccessError(Exception):
    """Base exception for authentication and event access failures.

    Attributes:
        code: Stable machine-readable error code.
        event_id: Event the request targeted, if any.
        capability: Capability that was requested, if any.
    """

    code: ClassVar[str] = "ACCESS_ERROR"

    def __init__(
        self,
        message: str,
        *,
        event_id: UUID | None = None,
        capability: EventCapability | None = None,
    ) -> None:
        self.message = message
        self.event_id = event_id
        self.capability = capability
        super().__init__(message)


class NotAuthenticatedError(AccessError):
    """No valid session. Missing, expired and disabled sessions look alike."""

    code = "NOT_AUTHENTICATED"


class NoEventAccessError(AccessError):
    """Authenticated, but not staff on the target event."""

    code = "NO_EVENT_ACCESS"


class ForbiddenError(AccessError):
    """Staff on the event, but the role lacks the capability."""

    code = "FORBIDDEN"


# ---------------------------------------------------------------------------
# Event access service
# ---------------------------------------------------------------------------


class EventAccessService:
    """Resolves effective event roles and enforces capabilities.

    Global roles listed in ``full_access_roles`` resolve to event_admin on
    every event, with or without an assignment row. Everyone else needs an
    EventStaffAssignment for the event.

    When an audit logger is supplied, every denial is recorded as a failed
    audit entry before the error is raised.

    Example:
        access = EventAccessService(session, settings.access.full_access_roles, audit)
        role = await access.require_capability(
            principal, event_id, EventCapability.APPROVE,
            action="approve_registration",
            resource_type="registration",
            resource_id=str(registration_id),
        )
    """

    def __init__(
        self,
        session: AsyncSession,
        full_access_roles: Iterable[str] = DEFAULT_FULL_ACCESS_ROLES,
        audit: AuditLogger | None = None,
    ) -> None:
        """Initialize the access service.

        Args:
            session: SQLAlchemy async session for assignment lookups.
            full_access_roles: Global roles treated as event_admin everywhere.
            audit: Optional audit logger used to record denials.
        """
        self._session = session
        self._full_access_roles = frozenset(full_access_roles)
        self._audit = audit

    def has_full_access(self, principal: Principal) -> bool:
        """Check whether the principal's global role overrides event scoping."""
        return principal.global_role in self._full_access_roles

    async def effective_role(self, principal: Principal, event_id: UUID) -> EventRole:
        """Determine the principal's role on an event.

        Args:
            principal: Authenticated principal.
            event_id: Target event.

        Returns:
            The effective EventRole.

        Raises:
            ForbiddenError: If the principal's account is disabled.
            NoEventAccessError: If there is no assignment and no global override.
        """
        if not principal.is_active:
            raise ForbiddenError("Account is not active", event_id=event_id)

        if self.has_full_access(principal):
            return EventRole.EVENT_ADMIN

        from sqlalchemy import select

        from carshow.db.models.auth import EventStaffAssignment

        result = await self._session.execute(
            select(EventStaffAssignment.event_role).where(
                EventStaffAssignment.event_id == event_id,
                EventStaffAssignment.admin_user_id == principal.admin_user_id,
            )
        )
        role = result.scalar_one_or_none()

        if role is None:
            raise NoEventAccessError("Not assigned to this event", event_id=event_id)

        return EventRole(role)

    async def require_capability(
        self,
        principal: Principal,
        event_id: UUID,
        capability: EventCapability,
        *,
        action: str | None = None,
        resource_type: str = "event",
        resource_id: str | None = None,
        details: dict[str, Any] | None = None,
        snapshot: Callable[[], Awaitable[dict[str, Any] | None]] | None = None,
    ) -> EventRole:
        """Require a capability on an event or raise.

        A denial writes nothing but its audit entry, so a denied request
        never causes a partial change.

        Args:
            principal: Authenticated principal.
            event_id: Target event.
            capability: Capability needed for the action.
            action: Audit action name recorded on denial.
            resource_type: Audit resource type recorded on denial.
            resource_id: Audit resource id recorded on denial (defaults to event id).
            details: Extra audit context recorded on denial.
            snapshot: Reads the current state of the target resource. Only
                awaited once the request has been denied; its result is
                recorded as both ``before`` and ``after`` of the denial entry.

        Returns:
            The effective role that was granted the capability.

        Raises:
            ForbiddenError: If the role lacks the capability or the account is disabled.
            NoEventAccessError: If the principal has no access to the event.
        """
        role: EventRole | None = None
        try:
            role = await self.effective_role(principal, event_id)
            if not authorize(role, capability):
                raise ForbiddenError(
                    f"Role {role.value} lacks capability {capability.value}",
                    event_id=event_id,
                    capability=capability,
                )
        except AccessError as exc:
            if exc.capability is None:
                exc.capability = capability
            logger.info(
                "Event access denied",
                extra={
                    "admin_user_id": str(principal.admin_user_id),
                    "event_id": str(event_id),
                    "capability": capability.value,
                    "code": exc.code,
                },
            )
            await self._record_denial(
                principal,
                event_id,
                capability,
                exc,
                role=role,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                details=details,
                snapshot=snapshot,
            )
            raise

        return role

    async def event_roles(self, principal: Principal) -> dict[UUID, EventRole]:
        """List the principal's explicit per-event roles.

        Global overrides are not expanded here; callers combine this with
        ``has_full_access``.

        Returns:
            Mapping of event id to assigned role.
        """
        from sqlalchemy import select

        from carshow.db.models.auth import EventStaffAssignment

        result = await self._session.execute(
            select(EventStaffAssignment.event_id, EventStaffAssignment.event_role).where(
                EventStaffAssignment.admin_user_id == principal.admin_user_id
            )
        )
        return {event_id: EventRole(role) for event_id, role in result.all()}

    async def _record_denial(
        self,
        principal: Principal,
        event_id: UUID,
        capability: EventCapability,
        exc: AccessError,
        *,
        role: EventRole | None,
        action: str | None,
        resource_type: str,
        resource_id: str | None,
        details: dict[str, Any] | None,
        snapshot: Callable[[], Awaitable[dict[str, Any] | None]] | None,
    ) -> None:
        if self._audit is None:
            return

        payload: dict[str, Any] = {
            "event_id": str(event_id),
            "capability": capability.value,
            "error": exc.code,
            "effective_role": role.value if role else None,
        }
        if details:
            payload.update(details)
        if snapshot is not None:
            # Nothing changes on a denial
            state = await snapshot()
            payload["before"] = state
            payload["after"] = state

        await self._audit.record(
            actor_id=principal.admin_user_id,
            action=action or f"authorize_{capability.value}",
            resource_type=resource_type,
            resource_id=resource_id or str(event_id),
            details=payload,
            outcome=AuditOutcome.FAILED,
        )
