"""Test data factories for carshow.

This module provides factory functions for building transient ORM objects
and principals. Use these to build consistent, valid test objects without
duplicating data structures across tests.
"""

from contextlib import asynccontextmanager
from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

from carshow.db.models.auth import AdminUser, EventStaffAssignment
from carshow.db.models.base import (
    CheckInStatus,
    EventRole,
    InspectionStatus,
    RegistrationStatus,
    RoundStatus,
)
from carshow.db.models.events import Event, Registration
from carshow.db.models.rounds import Round
from carshow.db.models.session import Session
from carshow.services.authz import Principal


def create_mock_session() -> AsyncMock:
    """Create an AsyncSession double.

    ``begin_nested`` returns an async context manager like the real
    session does; ``add`` is synchronous.
    """
    session = AsyncMock()
    session.add = MagicMock()

    @asynccontextmanager
    async def _savepoint():
        yield MagicMock()

    session.begin_nested = MagicMock(side_effect=lambda: _savepoint())
    return session


def create_principal(
    global_role: str = "staff",
    *,
    is_active: bool = True,
    admin_user_id: UUID | None = None,
    email: str = "staff@example.com",
) -> Principal:
    """Create an authenticated principal.

    Args:
        global_role: Account-wide role (staff, organizer, admin, ...).
        is_active: Whether the account is enabled.
        admin_user_id: Account id. Auto-generated if None.
        email: Login email.

    Returns:
        Principal ready for service calls.
    """
    return Principal(
        admin_user_id=admin_user_id or uuid4(),
        email=email,
        global_role=global_role,
        is_active=is_active,
        full_name="Test Staff",
    )


def create_admin_user(
    global_role: str = "staff",
    *,
    is_active: bool = True,
    password_hash: str | None = None,
    email: str = "staff@example.com",
) -> AdminUser:
    """Create a transient AdminUser."""
    return AdminUser(
        admin_user_id=uuid4(),
        email=email,
        password_hash=password_hash,
        full_name="Test Staff",
        global_role=global_role,
        is_active=is_active,
    )


def create_event(
    *,
    event_id: UUID | None = None,
    event_date: date | None = date(2026, 12, 1),
    name: str = "Winter Drift Night",
) -> Event:
    """Create a transient Event."""
    return Event(
        event_id=event_id or uuid4(),
        name=name,
        event_date=event_date,
        location="Bahrain International Circuit",
        is_active=True,
    )


def create_registration(
    event_id: UUID,
    *,
    status: RegistrationStatus = RegistrationStatus.PENDING,
    registration_number: str | None = None,
    check_in_status: CheckInStatus = CheckInStatus.NOT_CHECKED_IN,
    inspection_status: InspectionStatus = InspectionStatus.NONE,
    email: str | None = "driver@example.com",
    registration_id: UUID | None = None,
) -> Registration:
    """Create a transient Registration.

    Args:
        event_id: Owning event.
        status: Primary review status.
        registration_number: Issued number, if any.
        check_in_status: Gate check-in state.
        inspection_status: Gate inspection state.
        email: Participant email (None to skip notification).
        registration_id: Registration id. Auto-generated if None.

    Returns:
        Registration ready for lifecycle tests.
    """
    now = datetime.now(UTC)
    return Registration(
        registration_id=registration_id or uuid4(),
        event_id=event_id,
        created_at=now,
        updated_at=now,
        full_name="Ali Hassan",
        email=email,
        country_code="+973",
        phone_number="33334444",
        car_make="Nissan",
        car_model="Silvia S15",
        car_year=2001,
        status=status,
        registration_number=registration_number,
        rejection_reason=None,
        check_in_status=check_in_status,
        inspection_status=inspection_status,
    )


def create_assignment(event_id: UUID, admin_user_id: UUID, role: EventRole) -> EventStaffAssignment:
    """Create a transient EventStaffAssignment."""
    return EventStaffAssignment(
        assignment_id=uuid4(),
        event_id=event_id,
        admin_user_id=admin_user_id,
        event_role=role,
    )


def create_session_record(
    admin_user_id: UUID,
    *,
    is_active: bool = True,
    expires_in: timedelta = timedelta(hours=1),
    revoked: bool = False,
) -> Session:
    """Create a transient Session row."""
    now = datetime.now(UTC)
    return Session(
        session_id=uuid4(),
        token_hash="0" * 64,
        admin_user_id=admin_user_id,
        is_active=is_active,
        expires_at=now + expires_in,
        revoked_at=now if revoked else None,
    )


def create_round(
    event_id: UUID,
    round_order: int,
    *,
    name: str | None = None,
    status: RoundStatus = RoundStatus.PENDING,
) -> Round:
    """Create a transient Round."""
    return Round(
        round_id=uuid4(),
        event_id=event_id,
        name=name or f"Round {round_order}",
        round_order=round_order,
        status=status,
        round_date=None,
    )
