"""Tests for event-scoped registration queries."""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from carshow.db.models.base import RegistrationStatus
from carshow.db.models.events import Event, Registration
from carshow.services.authz import EventCapability, NoEventAccessError
from carshow.services.lifecycle import EventNotFoundError, RegistrationNotFoundError
from carshow.services.registrations import (
    RegistrationQueryService,
    RegistrationStats,
    _escape_like,
)
from tests.factories import (
    create_event,
    create_mock_session,
    create_principal,
    create_registration,
)


@pytest.fixture
def access() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def event() -> Event:
    return create_event()


def _scalars_result(rows) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


class TestGetEvent:
    @pytest.mark.asyncio
    async def test_found(self, access, event):
        session = create_mock_session()
        session.get.return_value = event

        found = await RegistrationQueryService(session, access).get_event(
            create_principal(), event.event_id
        )

        assert found is event
        assert access.require_capability.call_args.args[2] is EventCapability.VIEW

    @pytest.mark.asyncio
    async def test_missing(self, access):
        session = create_mock_session()
        session.get.return_value = None

        with pytest.raises(EventNotFoundError):
            await RegistrationQueryService(session, access).get_event(create_principal(), uuid4())

    @pytest.mark.asyncio
    async def test_no_access_skips_lookup(self, access, event):
        access.require_capability.side_effect = NoEventAccessError("no")
        session = create_mock_session()

        with pytest.raises(NoEventAccessError):
            await RegistrationQueryService(session, access).get_event(
                create_principal(), event.event_id
            )

        session.get.assert_not_called()


class TestListRegistrations:
    @pytest.mark.asyncio
    async def test_list_with_stats(self, access, event):
        rows = [
            create_registration(event.event_id),
            create_registration(event.event_id, status=RegistrationStatus.APPROVED),
        ]
        stats_result = MagicMock()
        stats_result.one.return_value = (2, 1, 1, 0)
        session = create_mock_session()
        session.execute.side_effect = [_scalars_result(rows), stats_result]

        listing = await RegistrationQueryService(session, access).list_registrations(
            create_principal(), event.event_id
        )

        assert listing.registrations == rows
        assert listing.stats == RegistrationStats(total=2, pending=1, approved=1, rejected=0)

    @pytest.mark.asyncio
    async def test_stats_empty_event(self, access, event):
        stats_result = MagicMock()
        stats_result.one.return_value = (0, None, None, None)
        session = create_mock_session()
        session.execute.return_value = stats_result

        stats = await RegistrationQueryService(session, access).get_stats(event.event_id)

        assert stats == RegistrationStats()


class TestGetRegistration:
    @pytest.mark.asyncio
    async def test_found(self, access, event):
        registration = create_registration(event.event_id)
        session = create_mock_session()
        session.get.return_value = registration

        found = await RegistrationQueryService(session, access).get_registration(
            create_principal(), event.event_id, registration.registration_id
        )

        assert found is registration
        session.get.assert_awaited_once_with(Registration, registration.registration_id)

    @pytest.mark.asyncio
    async def test_other_event_is_not_found(self, access, event):
        registration = create_registration(uuid4())
        session = create_mock_session()
        session.get.return_value = registration

        with pytest.raises(RegistrationNotFoundError):
            await RegistrationQueryService(session, access).get_registration(
                create_principal(), event.event_id, registration.registration_id
            )


class TestGateSearch:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   ", None])
    async def test_blank_query_returns_nothing(self, access, event, query):
        session = create_mock_session()

        matches = await RegistrationQueryService(session, access).search_for_gate(
            create_principal(), event.event_id, query
        )

        assert matches == []
        session.execute.assert_not_called()
        assert access.require_capability.call_args.args[2] is EventCapability.GATE_SCAN

    @pytest.mark.asyncio
    async def test_search_uses_substring_pattern(self, access, event):
        registration = create_registration(event.event_id)
        session = create_mock_session()
        session.execute.return_value = _scalars_result([registration])

        matches = await RegistrationQueryService(session, access).search_for_gate(
            create_principal(), event.event_id, "  silvia "
        )

        assert matches == [registration]
        stmt = session.execute.call_args.args[0]
        params = stmt.compile().params
        assert "%silvia%" in params.values()

    def test_escape_like(self):
        assert _escape_like("50%_off\\") == "50\\%\\_off\\\\"
