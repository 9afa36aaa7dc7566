"""Tests for competition round management.

Tests cover:
- Listing with the view capability
- Creating at the end or at a position, with dense renumbering
- Deleting and closing the gap
- Status changes and reordering
- Audit entries for changes and refused changes
"""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from carshow.db.models.base import AuditOutcome, RoundStatus
from carshow.db.models.rounds import Round
from carshow.services.authz import EventCapability, ForbiddenError
from carshow.services.rounds import InvalidRoundOrderError, RoundNotFoundError, RoundService
from tests.factories import create_mock_session, create_principal, create_round


def _rounds_result(rounds) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = rounds
    return result


def _session(rounds) -> AsyncMock:
    session = create_mock_session()
    session.execute.return_value = _rounds_result(rounds)
    by_id = {r.round_id: r for r in rounds}

    async def get(model, key):
        return by_id.get(key) if model is Round else None

    session.get.side_effect = get
    return session


@pytest.fixture
def event_id():
    return uuid4()


@pytest.fixture
def rounds(event_id):
    return [create_round(event_id, order) for order in (1, 2, 3)]


@pytest.fixture
def audit() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def access() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def principal():
    return create_principal("admin")


class TestListRounds:
    """Tests for RoundService.list_rounds."""

    @pytest.mark.asyncio
    async def test_list_requires_view(self, access, audit, event_id, rounds, principal):
        session = _session(rounds)

        listed = await RoundService(session, access, audit).list_rounds(principal, event_id)

        assert listed == rounds
        assert access.require_capability.call_args.args[2] is EventCapability.VIEW
        audit.record.assert_not_called()


class TestCreateRound:
    """Tests for RoundService.create_round."""

    @pytest.mark.asyncio
    async def test_create_appends(self, access, audit, event_id, rounds, principal):
        session = _session(rounds)

        created = await RoundService(session, access, audit).create_round(
            principal, event_id, "Final"
        )

        assert created.round_order == 4
        assert created.status is RoundStatus.PENDING
        assert [r.round_order for r in rounds] == [1, 2, 3]
        session.add.assert_called_once_with(created)
        session.flush.assert_awaited_once()

        assert access.require_capability.call_args.args[2] is EventCapability.MANAGE_ROUNDS
        kwargs = audit.record.call_args.kwargs
        assert kwargs["action"] == "create_round"
        assert kwargs["details"]["before"] is None
        assert kwargs["details"]["after"]["name"] == "Final"
        assert kwargs["details"]["after"]["round_order"] == 4

    @pytest.mark.asyncio
    async def test_create_at_position_shifts_later_rounds(
        self, access, audit, event_id, rounds, principal
    ):
        session = _session(rounds)

        created = await RoundService(session, access, audit).create_round(
            principal, event_id, "Warm-up", round_order=2
        )

        assert created.round_order == 2
        assert [r.round_order for r in rounds] == [1, 3, 4]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("position", [0, 5])
    async def test_position_out_of_range(
        self, access, audit, event_id, rounds, principal, position
    ):
        session = _session(rounds)

        with pytest.raises(InvalidRoundOrderError):
            await RoundService(session, access, audit).create_round(
                principal, event_id, "Extra", round_order=position
            )

        assert [r.round_order for r in rounds] == [1, 2, 3]
        session.add.assert_not_called()
        audit.record.assert_awaited_once()
        kwargs = audit.record.call_args.kwargs
        assert kwargs["outcome"] is AuditOutcome.FAILED
        assert kwargs["details"]["error"] == "INVALID_ROUND_ORDER"
        assert kwargs["details"]["before"] == kwargs["details"]["after"]
        assert kwargs["details"]["before"]["order"] == [str(r.round_id) for r in rounds]

    @pytest.mark.asyncio
    async def test_forbidden_changes_nothing(self, audit, event_id, rounds):
        session = _session(rounds)
        access = AsyncMock()
        access.require_capability.side_effect = ForbiddenError("no", event_id=event_id)

        with pytest.raises(ForbiddenError):
            await RoundService(session, access, audit).create_round(
                create_principal(), event_id, "Extra", round_order=1
            )

        assert [r.round_order for r in rounds] == [1, 2, 3]
        session.add.assert_not_called()
        session.flush.assert_not_called()
        snapshot = access.require_capability.call_args.kwargs["snapshot"]
        assert await snapshot() == {"order": [str(r.round_id) for r in rounds]}


class TestDeleteRound:
    """Tests for RoundService.delete_round."""

    @pytest.mark.asyncio
    async def test_delete_closes_gap(self, access, audit, event_id, rounds, principal):
        session = _session(rounds)
        first, middle, last = rounds

        await RoundService(session, access, audit).delete_round(
            principal, event_id, middle.round_id
        )

        session.delete.assert_awaited_once_with(middle)
        assert first.round_order == 1
        assert last.round_order == 2
        kwargs = audit.record.call_args.kwargs
        assert kwargs["action"] == "delete_round"
        assert kwargs["details"]["before"]["round_order"] == 2
        assert kwargs["details"]["after"] is None

    @pytest.mark.asyncio
    async def test_missing_round_is_not_found(self, access, audit, event_id, rounds, principal):
        session = _session(rounds)
        other_event_round = create_round(uuid4(), 1)

        with pytest.raises(RoundNotFoundError) as exc_info:
            await RoundService(session, access, audit).delete_round(
                principal, event_id, other_event_round.round_id
            )

        assert exc_info.value.code == "NOT_FOUND"
        session.delete.assert_not_called()
        assert [r.round_order for r in rounds] == [1, 2, 3]
        kwargs = audit.record.call_args.kwargs
        assert kwargs["outcome"] is AuditOutcome.FAILED
        assert kwargs["details"]["error"] == "NOT_FOUND"


class TestSetStatus:
    """Tests for RoundService.set_status."""

    @pytest.mark.asyncio
    async def test_status_change_is_audited(self, access, audit, event_id, rounds, principal):
        session = _session(rounds)
        target = rounds[0]

        updated = await RoundService(session, access, audit).set_status(
            principal, event_id, target.round_id, RoundStatus.ACTIVE
        )

        assert updated.status is RoundStatus.ACTIVE
        details = audit.record.call_args.kwargs["details"]
        assert details["before"]["status"] == "pending"
        assert details["after"]["status"] == "active"
        assert access.require_capability.call_args.args[2] is EventCapability.MANAGE_ROUNDS


class TestReorder:
    """Tests for RoundService.reorder."""

    @pytest.mark.asyncio
    async def test_reorder(self, access, audit, event_id, rounds, principal):
        session = _session(rounds)
        first, second, third = rounds

        ordered = await RoundService(session, access, audit).reorder(
            principal, event_id, [third.round_id, first.round_id, second.round_id]
        )

        assert ordered == [third, first, second]
        assert (third.round_order, first.round_order, second.round_order) == (1, 2, 3)
        details = audit.record.call_args.kwargs["details"]
        assert details["before"]["order"] == [str(r.round_id) for r in (first, second, third)]
        assert details["after"]["order"] == [str(r.round_id) for r in (third, first, second)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("pick", ["missing", "duplicate", "foreign"])
    async def test_reorder_must_list_each_round_once(
        self, access, audit, event_id, rounds, principal, pick
    ):
        session = _session(rounds)
        ids = [r.round_id for r in rounds]
        if pick == "missing":
            ids = ids[:2]
        elif pick == "duplicate":
            ids = [ids[0], ids[0], ids[1]]
        else:
            ids = [ids[0], ids[1], uuid4()]

        with pytest.raises(InvalidRoundOrderError):
            await RoundService(session, access, audit).reorder(principal, event_id, ids)

        assert [r.round_order for r in rounds] == [1, 2, 3]
        session.flush.assert_not_called()
        assert audit.record.call_args.kwargs["outcome"] is AuditOutcome.FAILED
