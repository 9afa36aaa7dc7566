"""API tests for the staff endpoints.

Requests run in-process against the FastAPI app with a mocked database
session, so the real dependencies, services and error mapping are
exercised end to end.

Tests cover:
- Health check and request ID propagation
- Session token extraction (cookie, X-Session-Token, Bearer)
- Error mapping (401, 403 no_event_access / forbidden, 404, 409, 422)
- Review transitions and their response shape
- Login, logout and /me
- Staff assignment routes
- Registration edits and round routes
- OpenAPI security scheme and the default notifier
"""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from carshow.api.dependencies import get_current_principal
from carshow.db.models.base import EventRole, RegistrationStatus
from carshow.db.models.events import Event, Registration
from carshow.services.notifications import NOTIFY_FAILED, NullNotifier
from carshow.services.session import hash_password
from tests.factories import (
    create_admin_user,
    create_event,
    create_principal,
    create_registration,
    create_round,
    create_session_record,
)


def _use_principal(app, principal) -> None:
    app.dependency_overrides[get_current_principal] = lambda: principal


def _serve_rows(session, event: Event, registration: Registration | None = None) -> None:
    async def get(model, key):
        if model is Event and key == event.event_id:
            return event
        if model is Registration and registration and key == registration.registration_id:
            return registration
        return None

    session.get.side_effect = get


def _assignment(session, role: EventRole | None) -> None:
    result = MagicMock()
    result.scalar_one_or_none.return_value = role
    session.execute.return_value = result


class TestHealthAndRequestId:
    @pytest.mark.asyncio
    async def test_health(self, api_client):
        response = await api_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}
        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, api_client):
        response = await api_client.get("/health", headers={"X-Request-ID": "trace-123"})

        assert response.headers["X-Request-ID"] == "trace-123"

    @pytest.mark.asyncio
    async def test_oversized_request_id_is_replaced(self, api_client):
        response = await api_client.get("/health", headers={"X-Request-ID": "x" * 200})

        assert response.headers["X-Request-ID"] != "x" * 200


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, api_client, mock_session):
        response = await api_client.get(f"/api/events/{uuid4()}")

        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "not_authenticated"
        assert body["request_id"] == response.headers["X-Request-ID"]
        assert response.headers["WWW-Authenticate"] == "Bearer"
        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_token_is_401(self, api_client, mock_session):
        result = MagicMock()
        result.one_or_none.return_value = None
        mock_session.execute.return_value = result

        response = await api_client.get(
            f"/api/events/{uuid4()}", headers={"Authorization": "Bearer forged"}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "not_authenticated"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "headers",
        [
            {"Cookie": "carshow_session=tok"},
            {"X-Session-Token": "tok"},
            {"Authorization": "Bearer tok"},
        ],
        ids=["cookie", "header", "bearer"],
    )
    async def test_token_sources(self, api_client, mock_session, headers):
        user = create_admin_user("admin")
        record = create_session_record(user.admin_user_id)
        event = create_event()
        result = MagicMock()
        result.one_or_none.return_value = (record, user)
        mock_session.execute.return_value = result
        _serve_rows(mock_session, event)

        response = await api_client.get(f"/api/events/{event.event_id}", headers=headers)

        assert response.status_code == 200
        assert response.json()["name"] == "Winter Drift Night"


class TestEventAccessErrors:
    @pytest.mark.asyncio
    async def test_unassigned_staff_is_no_event_access(self, api_client, test_app, mock_session):
        _use_principal(test_app, create_principal("staff"))
        _assignment(mock_session, None)
        event_id = uuid4()

        response = await api_client.get(f"/api/events/{event_id}/registrations")

        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "no_event_access"
        assert body["detail"]["event_id"] == str(event_id)
        # Denial audit entry is kept
        mock_session.add.assert_called_once()
        mock_session.commit.assert_awaited()

    @pytest.mark.asyncio
    async def test_gate_staff_cannot_approve(self, api_client, test_app, mock_session):
        _use_principal(test_app, create_principal("staff"))
        _assignment(mock_session, EventRole.GATE)

        response = await api_client.post(
            f"/api/events/{uuid4()}/registrations/{uuid4()}/approve"
        )

        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "forbidden"
        assert body["detail"]["capability"] == "approve"
        mock_session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_registration_not_found(self, api_client, test_app, mock_session):
        _use_principal(test_app, create_principal("admin"))
        event = create_event()
        _serve_rows(mock_session, event)

        response = await api_client.get(
            f"/api/events/{event.event_id}/registrations/{uuid4()}"
        )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_check_in_pending_is_conflict(self, api_client, test_app, mock_session):
        _use_principal(test_app, create_principal("admin"))
        event = create_event()
        registration = create_registration(event.event_id)
        _serve_rows(mock_session, event, registration)

        response = await api_client.post(
            f"/api/events/{event.event_id}/registrations/{registration.registration_id}/check-in"
        )

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "invalid_transition"
        assert body["detail"]["current_status"] == "pending"
        assert registration.status is RegistrationStatus.PENDING

    @pytest.mark.asyncio
    async def test_invalid_body_is_422(self, api_client, test_app):
        _use_principal(test_app, create_principal("admin"))

        response = await api_client.post(
            f"/api/events/{uuid4()}/registrations/{uuid4()}/reject",
            json={"reason": 123},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"


class TestTransitions:
    @pytest.mark.asyncio
    async def test_reapprove_with_failed_notification(self, api_client, test_app, mock_session):
        _use_principal(test_app, create_principal("admin"))
        notifier = AsyncMock()
        notifier.notify.side_effect = ConnectionError("smtp down")
        test_app.state.notifier = notifier
        event = create_event()
        registration = create_registration(
            event.event_id,
            status=RegistrationStatus.REJECTED,
            registration_number="BN-01122026-RW2-4242",
        )
        _serve_rows(mock_session, event, registration)

        response = await api_client.post(
            f"/api/events/{event.event_id}/registrations/{registration.registration_id}/approve"
        )

        assert response.status_code == 200
        body = response.json()
        assert body["action"] == "approve"
        assert body["status_changed"] is True
        assert body["previous"]["status"] == "rejected"
        assert body["current"]["status"] == "approved"
        assert body["registration_number"] == "BN-01122026-RW2-4242"
        assert body["warning"] == NOTIFY_FAILED

    @pytest.mark.asyncio
    async def test_gate_reject_with_reason(self, api_client, test_app, mock_session):
        _use_principal(test_app, create_principal("admin"))
        event = create_event()
        registration = create_registration(event.event_id, status=RegistrationStatus.APPROVED)
        _serve_rows(mock_session, event, registration)

        response = await api_client.post(
            f"/api/events/{event.event_id}/registrations/"
            f"{registration.registration_id}/gate-reject",
            json={"reason": "Bald tyres"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status_changed"] is False
        assert body["current"]["inspection_status"] == "rejected"
        assert body["current"]["rejection_reason"] == "Bald tyres"
        assert body["warning"] is None


class TestLoginLogout:
    @pytest.mark.asyncio
    async def test_login_sets_cookie(self, api_client, mock_session):
        user = create_admin_user(email="gate@example.com", password_hash=hash_password("pw"))
        event_id = uuid4()
        result = MagicMock()
        result.scalar_one_or_none.return_value = user
        result.all.return_value = [(event_id, "gate")]
        mock_session.execute.return_value = result

        response = await api_client.post(
            "/api/auth/login", json={"email": "gate@example.com", "password": "pw"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["access_token"]
        assert body["principal"]["full_access"] is False
        assert body["principal"]["event_roles"] == [
            {"event_id": str(event_id), "event_role": "gate"}
        ]
        assert "carshow_session=" in response.headers["set-cookie"]
        assert "httponly" in response.headers["set-cookie"].lower()
        mock_session.add.assert_called_once()

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, api_client, mock_session):
        user = create_admin_user(password_hash=hash_password("pw"))
        result = MagicMock()
        result.scalar_one_or_none.return_value = user
        mock_session.execute.return_value = result

        response = await api_client.post(
            "/api/auth/login", json={"email": user.email, "password": "nope"}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "not_authenticated"
        assert "set-cookie" not in response.headers

    @pytest.mark.asyncio
    async def test_logout_revokes(self, api_client, mock_session):
        result = MagicMock()
        result.rowcount = 1
        mock_session.execute.return_value = result

        response = await api_client.post("/api/auth/logout", headers={"X-Session-Token": "tok"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "revoked": True}

    @pytest.mark.asyncio
    async def test_me_for_full_access_role(self, api_client, test_app, mock_session):
        principal = create_principal("super_admin", email="root@example.com")
        _use_principal(test_app, principal)
        result = MagicMock()
        result.all.return_value = []
        mock_session.execute.return_value = result

        response = await api_client.get("/api/auth/me")

        assert response.status_code == 200
        body = response.json()
        assert body["email"] == "root@example.com"
        assert body["full_access"] is True
        assert body["event_roles"] == []


class TestStaffRoutes:
    @pytest.mark.asyncio
    async def test_assign_requires_manage_staff(self, api_client, test_app, mock_session):
        _use_principal(test_app, create_principal("staff"))
        _assignment(mock_session, EventRole.APPROVER)

        response = await api_client.put(
            f"/api/events/{uuid4()}/staff/{uuid4()}", json={"event_role": "gate"}
        )

        assert response.status_code == 403
        assert response.json()["detail"]["capability"] == "manage_staff"

    @pytest.mark.asyncio
    async def test_unassign_is_idempotent(self, api_client, test_app, mock_session):
        _use_principal(test_app, create_principal("admin"))
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        mock_session.execute.return_value = result

        response = await api_client.delete(f"/api/events/{uuid4()}/staff/{uuid4()}")

        assert response.status_code == 204


class TestRegistrationEditRoute:
    @pytest.mark.asyncio
    async def test_data_entry_can_edit(self, api_client, test_app, mock_session):
        _use_principal(test_app, create_principal("staff"))
        _assignment(mock_session, EventRole.DATA_ENTRY)
        event = create_event()
        registration = create_registration(event.event_id)
        _serve_rows(mock_session, event, registration)

        response = await api_client.put(
            f"/api/events/{event.event_id}/registrations/{registration.registration_id}",
            json={"phone_number": "39990000", "car_year": 2002},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["phone_number"] == "39990000"
        assert body["car_year"] == 2002
        assert body["status"] == "pending"

    @pytest.mark.asyncio
    async def test_gate_staff_cannot_edit(self, api_client, test_app, mock_session):
        _use_principal(test_app, create_principal("staff"))
        _assignment(mock_session, EventRole.GATE)
        event = create_event()
        registration = create_registration(event.event_id)
        _serve_rows(mock_session, event, registration)

        response = await api_client.put(
            f"/api/events/{event.event_id}/registrations/{registration.registration_id}",
            json={"full_name": "Someone Else"},
        )

        assert response.status_code == 403
        assert response.json()["detail"]["capability"] == "edit_registration"
        assert registration.full_name == "Ali Hassan"

    @pytest.mark.asyncio
    async def test_status_is_not_an_editable_field(self, api_client, test_app):
        _use_principal(test_app, create_principal("admin"))

        response = await api_client.put(
            f"/api/events/{uuid4()}/registrations/{uuid4()}",
            json={"status": "approved"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"


class TestRoundRoutes:
    @pytest.mark.asyncio
    async def test_list_rounds(self, api_client, test_app, mock_session):
        _use_principal(test_app, create_principal("staff"))
        event_id = uuid4()
        rounds = [create_round(event_id, 1), create_round(event_id, 2)]
        result = MagicMock()
        result.scalar_one_or_none.return_value = EventRole.VIEWER
        result.scalars.return_value.all.return_value = rounds
        mock_session.execute.return_value = result

        response = await api_client.get(f"/api/events/{event_id}/rounds")

        assert response.status_code == 200
        items = response.json()["items"]
        assert [item["round_order"] for item in items] == [1, 2]
        assert items[0]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_create_round(self, api_client, test_app, mock_session):
        _use_principal(test_app, create_principal("admin"))
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        mock_session.execute.return_value = result
        event_id = uuid4()

        response = await api_client.post(
            f"/api/events/{event_id}/rounds", json={"name": "Qualifying"}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Qualifying"
        assert body["round_order"] == 1
        assert body["event_id"] == str(event_id)
        mock_session.add.assert_called()

    @pytest.mark.asyncio
    async def test_viewer_cannot_create_round(self, api_client, test_app, mock_session):
        _use_principal(test_app, create_principal("staff"))
        _assignment(mock_session, EventRole.VIEWER)

        response = await api_client.post(
            f"/api/events/{uuid4()}/rounds", json={"name": "Qualifying"}
        )

        assert response.status_code == 403
        assert response.json()["detail"]["capability"] == "manage_rounds"


class TestAppDefaults:
    @pytest.mark.asyncio
    async def test_openapi_documents_bearer_scheme(self, api_client):
        response = await api_client.get("/api/openapi.json")

        assert response.status_code == 200
        schemes = response.json()["components"]["securitySchemes"]
        assert schemes["HTTPBearer"]["scheme"] == "bearer"

    @pytest.mark.asyncio
    async def test_disabled_notifications_use_null_notifier(
        self, api_client, test_app, mock_session
    ):
        _use_principal(test_app, create_principal("admin"))
        event = create_event()
        registration = create_registration(event.event_id)
        _serve_rows(mock_session, event, registration)

        response = await api_client.post(
            f"/api/events/{event.event_id}/registrations/{registration.registration_id}/reject"
        )

        assert response.status_code == 200
        assert response.json()["warning"] is None
        assert isinstance(test_app.state.notifier, NullNotifier)
