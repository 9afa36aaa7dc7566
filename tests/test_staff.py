"""Tests for per-event staff assignment."""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from carshow.db.models.auth import AdminUser, EventStaffAssignment
from carshow.db.models.base import AuditOutcome, EventRole
from carshow.services.authz import EventCapability, ForbiddenError
from carshow.services.staff import StaffAssignmentService, StaffMemberNotFoundError
from tests.factories import (
    create_admin_user,
    create_assignment,
    create_mock_session,
    create_principal,
)


def _one_or_none(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


@pytest.fixture
def event_id():
    return uuid4()


@pytest.fixture
def audit() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def access() -> AsyncMock:
    return AsyncMock()


class TestAssign:
    """Tests for StaffAssignmentService.assign."""

    @pytest.mark.asyncio
    async def test_new_assignment(self, access, audit, event_id):
        user = create_admin_user(email="gate@example.com")
        session = create_mock_session()
        session.get.return_value = user
        session.execute.return_value = _one_or_none(None)

        member = await StaffAssignmentService(session, access, audit).assign(
            create_principal("admin"), event_id, user.admin_user_id, EventRole.GATE
        )

        assert member.event_role is EventRole.GATE
        assert member.email == "gate@example.com"
        added = session.add.call_args.args[0]
        assert isinstance(added, EventStaffAssignment)
        assert added.event_id == event_id
        assert added.event_role is EventRole.GATE
        session.flush.assert_awaited_once()

        assert access.require_capability.call_args.args[2] is EventCapability.MANAGE_STAFF
        details = audit.record.call_args.kwargs["details"]
        assert details["before"] == {"event_role": None}
        assert details["after"] == {"event_role": EventRole.GATE}

    @pytest.mark.asyncio
    async def test_role_change_updates_existing_row(self, access, audit, event_id):
        user = create_admin_user()
        assignment = create_assignment(event_id, user.admin_user_id, EventRole.VIEWER)
        session = create_mock_session()
        session.get.return_value = user
        session.execute.return_value = _one_or_none(assignment)

        await StaffAssignmentService(session, access, audit).assign(
            create_principal("admin"), event_id, user.admin_user_id, EventRole.APPROVER
        )

        assert assignment.event_role is EventRole.APPROVER
        session.add.assert_not_called()
        details = audit.record.call_args.kwargs["details"]
        assert details["before"] == {"event_role": EventRole.VIEWER}

    @pytest.mark.asyncio
    async def test_unknown_user(self, access, audit, event_id):
        session = create_mock_session()
        session.get.return_value = None
        admin_user_id = uuid4()

        with pytest.raises(StaffMemberNotFoundError):
            await StaffAssignmentService(session, access, audit).assign(
                create_principal("admin"), event_id, admin_user_id, EventRole.GATE
            )

        session.get.assert_awaited_once_with(AdminUser, admin_user_id)
        session.add.assert_not_called()
        assert audit.record.call_args.kwargs["outcome"] is AuditOutcome.FAILED

    @pytest.mark.asyncio
    async def test_forbidden_changes_nothing(self, access, audit, event_id):
        access.require_capability.side_effect = ForbiddenError("no")
        session = create_mock_session()

        with pytest.raises(ForbiddenError):
            await StaffAssignmentService(session, access, audit).assign(
                create_principal(), event_id, uuid4(), EventRole.EVENT_ADMIN
            )

        session.get.assert_not_called()
        session.add.assert_not_called()


class TestUnassign:
    """Tests for StaffAssignmentService.unassign."""

    @pytest.mark.asyncio
    async def test_removes_assignment(self, access, audit, event_id):
        session = create_mock_session()
        session.execute.return_value = _one_or_none(EventRole.GATE)

        removed = await StaffAssignmentService(session, access, audit).unassign(
            create_principal("admin"), event_id, uuid4()
        )

        assert removed is True
        details = audit.record.call_args.kwargs["details"]
        assert details["before"] == {"event_role": EventRole.GATE}
        assert details["after"] == {"event_role": None}

    @pytest.mark.asyncio
    async def test_nothing_to_remove(self, access, audit, event_id):
        session = create_mock_session()
        session.execute.return_value = _one_or_none(None)

        removed = await StaffAssignmentService(session, access, audit).unassign(
            create_principal("admin"), event_id, uuid4()
        )

        assert removed is False
        audit.record.assert_awaited_once()


class TestListStaff:
    @pytest.mark.asyncio
    async def test_lists_users_with_roles(self, access, audit, event_id):
        assigned = create_admin_user(email="a@example.com")
        unassigned = create_admin_user(email="b@example.com")
        result = MagicMock()
        result.all.return_value = [(assigned, "approver"), (unassigned, None)]
        session = create_mock_session()
        session.execute.return_value = result

        members = await StaffAssignmentService(session, access, audit).list_staff(
            create_principal("admin"), event_id
        )

        assert [m.email for m in members] == ["a@example.com", "b@example.com"]
        assert members[0].event_role is EventRole.APPROVER
        assert members[1].event_role is None
