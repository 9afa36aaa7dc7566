"""Per-event staff assignment management.

Assigning, changing and removing a staff member's role on an event. All
operations require the manage_staff capability on that event and every
mutation is audited with before/after roles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, ClassVar

from sqlalchemy import delete, select

from carshow.db.models.base import AuditOutcome, EventRole
from carshow.services.authz import EventCapability

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from carshow.services.audit_log import AuditLogger
    from carshow.services.authz import EventAccessService, Principal

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StaffMember:
    """An admin user and their role on one event (None if unassigned)."""

    admin_user_id: UUID
    email: str
    full_name: str | None
    global_role: str
    is_active: bool
    event_role: EventRole | None


class StaffMemberNotFoundError(Exception):
    """Raised when the admin user to assign does not exist."""

    code: ClassVar[str] = "NOT_FOUND"

    def __init__(self, admin_user_id: UUID) -> None:
        self.admin_user_id = admin_user_id
        super().__init__(f"Admin user {admin_user_id} not found")


class StaffAssignmentService:
    """Manages EventStaffAssignment rows for an event."""

    def __init__(
        self,
        session: AsyncSession,
        access: EventAccessService,
        audit: AuditLogger,
    ) -> None:
        self._session = session
        self._access = access
        self._audit = audit

    async def list_staff(self, principal: Principal, event_id: UUID) -> list[StaffMember]:
        """List every admin user with their role on the event, if any."""
        from carshow.db.models.auth import AdminUser, EventStaffAssignment

        await self._access.require_capability(
            principal, event_id, EventCapability.MANAGE_STAFF, action="list_staff"
        )

        result = await self._session.execute(
            select(AdminUser, EventStaffAssignment.event_role)
            .outerjoin(
                EventStaffAssignment,
                (EventStaffAssignment.admin_user_id == AdminUser.admin_user_id)
                & (EventStaffAssignment.event_id == event_id),
            )
            .order_by(AdminUser.email)
        )
        return [
            StaffMember(
                admin_user_id=user.admin_user_id,
                email=user.email,
                full_name=user.full_name,
                global_role=user.global_role,
                is_active=user.is_active,
                event_role=EventRole(role) if role is not None else None,
            )
            for user, role in result.all()
        ]

    async def assign(
        self,
        principal: Principal,
        event_id: UUID,
        admin_user_id: UUID,
        role: EventRole,
    ) -> StaffMember:
        """Give an admin user a role on the event, replacing any existing one.

        Raises:
            StaffMemberNotFoundError: If the admin user does not exist.
        """
        from carshow.db.models.auth import AdminUser, EventStaffAssignment

        await self._access.require_capability(
            principal,
            event_id,
            EventCapability.MANAGE_STAFF,
            action="assign_event_staff",
            resource_type="event_staff",
            resource_id=str(admin_user_id),
        )

        user = await self._session.get(AdminUser, admin_user_id)
        if user is None:
            await self._audit.record(
                actor_id=principal.admin_user_id,
                action="assign_event_staff",
                resource_type="event_staff",
                resource_id=str(admin_user_id),
                details={"event_id": event_id, "error": StaffMemberNotFoundError.code},
                outcome=AuditOutcome.FAILED,
            )
            raise StaffMemberNotFoundError(admin_user_id)

        result = await self._session.execute(
            select(EventStaffAssignment).where(
                EventStaffAssignment.event_id == event_id,
                EventStaffAssignment.admin_user_id == admin_user_id,
            )
        )
        assignment = result.scalar_one_or_none()
        previous_role = assignment.event_role if assignment else None

        if assignment is None:
            assignment = EventStaffAssignment(
                event_id=event_id,
                admin_user_id=admin_user_id,
                event_role=role,
            )
            self._session.add(assignment)
        else:
            assignment.event_role = role
            assignment.updated_at = datetime.now(UTC)

        await self._session.flush()

        await self._audit.record(
            actor_id=principal.admin_user_id,
            action="assign_event_staff",
            resource_type="event_staff",
            resource_id=str(admin_user_id),
            details={
                "event_id": event_id,
                "before": {"event_role": previous_role},
                "after": {"event_role": role},
            },
        )

        logger.info(
            "Event staff assigned",
            extra={
                "event_id": str(event_id),
                "admin_user_id": str(admin_user_id),
                "event_role": role.value,
            },
        )

        return StaffMember(
            admin_user_id=user.admin_user_id,
            email=user.email,
            full_name=user.full_name,
            global_role=user.global_role,
            is_active=user.is_active,
            event_role=role,
        )

    async def unassign(self, principal: Principal, event_id: UUID, admin_user_id: UUID) -> bool:
        """Remove an admin user's role on the event.

        Returns:
            True if an assignment was removed, False if there was none.
        """
        from carshow.db.models.auth import EventStaffAssignment

        await self._access.require_capability(
            principal,
            event_id,
            EventCapability.MANAGE_STAFF,
            action="unassign_event_staff",
            resource_type="event_staff",
            resource_id=str(admin_user_id),
        )

        result = await self._session.execute(
            delete(EventStaffAssignment)
            .where(
                EventStaffAssignment.event_id == event_id,
                EventStaffAssignment.admin_user_id == admin_user_id,
            )
            .returning(EventStaffAssignment.event_role)
        )
        removed_role = result.scalar_one_or_none()

        await self._audit.record(
            actor_id=principal.admin_user_id,
            action="unassign_event_staff",
            resource_type="event_staff",
            resource_id=str(admin_user_id),
            details={
                "event_id": event_id,
                "before": {"event_role": removed_role},
                "after": {"event_role": None},
            },
        )

        if removed_role is None:
            return False

        logger.info(
            "Event staff unassigned",
            extra={"event_id": str(event_id), "admin_user_id": str(admin_user_id)},
        )
        return True
