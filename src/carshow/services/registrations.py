"""Read-side registration queries for event staff.

Listing, detail, gate search and event lookup. Every query goes through
the event access check first; none of them lock against concurrent writes,
so counts may be slightly stale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import case, func, or_, select

from carshow.db.models.base import RegistrationStatus
from carshow.services.authz import EventCapability
from carshow.services.lifecycle import EventNotFoundError, RegistrationNotFoundError

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from carshow.db.models.events import Event, Registration
    from carshow.services.authz import EventAccessService, Principal

logger = logging.getLogger(__name__)

GATE_SEARCH_LIMIT = 50


@dataclass(frozen=True, slots=True)
class RegistrationStats:
    """Registration counts for one event."""

    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


@dataclass(frozen=True, slots=True)
class RegistrationListing:
    """Registrations of an event, newest first, with their counts."""

    registrations: list[Registration]
    stats: RegistrationStats


class RegistrationQueryService:
    """Event-scoped registration reads.

    Example:
        queries = RegistrationQueryService(session, access)
        listing = await queries.list_registrations(principal, event_id)
        matches = await queries.search_for_gate(principal, event_id, "BN-0112")
    """

    def __init__(self, session: AsyncSession, access: EventAccessService) -> None:
        self._session = session
        self._access = access

    async def get_event(self, principal: Principal, event_id: UUID) -> Event:
        """Fetch an event the principal can view.

        Raises:
            EventNotFoundError: If the event does not exist.
        """
        from carshow.db.models.events import Event

        await self._access.require_capability(principal, event_id, EventCapability.VIEW)

        event = await self._session.get(Event, event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    async def list_registrations(
        self, principal: Principal, event_id: UUID
    ) -> RegistrationListing:
        """List an event's registrations with status counts."""
        from carshow.db.models.events import Registration

        await self._access.require_capability(principal, event_id, EventCapability.VIEW)

        result = await self._session.execute(
            select(Registration)
            .where(Registration.event_id == event_id)
            .order_by(Registration.created_at.desc())
        )
        registrations = list(result.scalars().all())

        stats = await self.get_stats(event_id)
        return RegistrationListing(registrations=registrations, stats=stats)

    async def get_stats(self, event_id: UUID) -> RegistrationStats:
        """Count an event's registrations by status.

        Callers are expected to have checked access already.
        """
        from carshow.db.models.events import Registration

        by_status = [
            func.count(case((Registration.status == status, 1)))
            for status in (
                RegistrationStatus.PENDING,
                RegistrationStatus.APPROVED,
                RegistrationStatus.REJECTED,
            )
        ]
        result = await self._session.execute(
            select(func.count(Registration.registration_id), *by_status).where(
                Registration.event_id == event_id
            )
        )
        total, pending, approved, rejected = result.one()
        return RegistrationStats(
            total=total or 0,
            pending=pending or 0,
            approved=approved or 0,
            rejected=rejected or 0,
        )

    async def get_registration(
        self, principal: Principal, event_id: UUID, registration_id: UUID
    ) -> Registration:
        """Fetch one registration of an event.

        Raises:
            RegistrationNotFoundError: If missing or owned by another event.
        """
        from carshow.db.models.events import Registration

        await self._access.require_capability(principal, event_id, EventCapability.VIEW)

        registration = await self._session.get(Registration, registration_id)
        if registration is None or registration.event_id != event_id:
            raise RegistrationNotFoundError(registration_id)
        return registration

    async def search_for_gate(
        self, principal: Principal, event_id: UUID, query: str
    ) -> list[Registration]:
        """Find registrations at the gate by number, name, contact or car.

        Matching is a case-insensitive substring search. A blank query
        returns nothing rather than the whole event.
        """
        from carshow.db.models.events import Registration

        await self._access.require_capability(principal, event_id, EventCapability.GATE_SCAN)

        term = (query or "").strip()
        if not term:
            return []

        pattern = f"%{_escape_like(term)}%"
        columns = (
            Registration.registration_number,
            Registration.full_name,
            Registration.email,
            Registration.phone_number,
            Registration.car_make,
            Registration.car_model,
        )
        result = await self._session.execute(
            select(Registration)
            .where(
                Registration.event_id == event_id,
                or_(*(column.ilike(pattern, escape="\\") for column in columns)),
            )
            .order_by(Registration.created_at.desc())
            .limit(GATE_SEARCH_LIMIT)
        )
        matches = list(result.scalars().all())

        logger.debug(
            "Gate search",
            extra={"event_id": str(event_id), "matches": len(matches)},
        )
        return matches


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
