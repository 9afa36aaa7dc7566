"""Event staff router.

Registration review and gate operations for one event:
- GET  /events/{event_id}
- GET  /events/{event_id}/registrations
- GET  /events/{event_id}/registrations/{registration_id}
- PUT  /events/{event_id}/registrations/{registration_id}
- GET  /events/{event_id}/registrations/{registration_id}/audit
- POST /events/{event_id}/registrations/{registration_id}/approve
- POST /events/{event_id}/registrations/{registration_id}/reject
- POST /events/{event_id}/registrations/{registration_id}/check-in
- POST /events/{event_id}/registrations/{registration_id}/gate-reject
- GET  /events/{event_id}/gate-scan?q=

Every route resolves the caller's role on the event from the database and
checks the capability the action needs.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, Query

from carshow.api.dependencies import (
    CurrentPrincipal,
    DbSession,
    LifecycleService,
    QueryService,
)
from carshow.api.schemas.events import (
    AuditEntryResponse,
    AuditHistoryResponse,
    CheckInRequest,
    EventResponse,
    GateScanResponse,
    RegistrationListResponse,
    RegistrationResponse,
    RegistrationStatsResponse,
    RegistrationUpdateRequest,
    RejectRequest,
    TransitionResponse,
)
from carshow.services.audit_log import AuditLogger
from carshow.services.lifecycle import TransitionResult

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/events",
    tags=["events"],
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "No access to the event, or capability missing"},
        404: {"description": "Event or registration not found"},
    },
)


def _transition_response(registration_id: UUID, result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        registration_id=registration_id,
        action=result.action.value,
        status_changed=result.status_changed,
        previous=result.previous,
        current=result.current,
        registration_number=result.registration_number,
        warning=result.warning,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@router.get("/{event_id}")
async def get_event(
    event_id: UUID,
    principal: CurrentPrincipal,
    queries: QueryService,
) -> EventResponse:
    """Get an event the caller is staff on."""
    event = await queries.get_event(principal, event_id)
    return EventResponse.model_validate(event)


@router.get("/{event_id}/registrations")
async def list_registrations(
    event_id: UUID,
    principal: CurrentPrincipal,
    queries: QueryService,
) -> RegistrationListResponse:
    """List an event's registrations with status counts."""
    listing = await queries.list_registrations(principal, event_id)
    return RegistrationListResponse(
        items=[RegistrationResponse.model_validate(r) for r in listing.registrations],
        stats=RegistrationStatsResponse.model_validate(listing.stats),
    )


@router.get("/{event_id}/registrations/{registration_id}")
async def get_registration(
    event_id: UUID,
    registration_id: UUID,
    principal: CurrentPrincipal,
    queries: QueryService,
) -> RegistrationResponse:
    """Get one registration of the event."""
    registration = await queries.get_registration(principal, event_id, registration_id)
    return RegistrationResponse.model_validate(registration)


@router.put("/{event_id}/registrations/{registration_id}")
async def update_registration(
    event_id: UUID,
    registration_id: UUID,
    body: RegistrationUpdateRequest,
    principal: CurrentPrincipal,
    lifecycle: LifecycleService,
) -> RegistrationResponse:
    """Edit participant and vehicle details of a registration."""
    registration = await lifecycle.update_registration(
        principal, event_id, registration_id, body.model_dump(exclude_unset=True)
    )
    return RegistrationResponse.model_validate(registration)


@router.get("/{event_id}/registrations/{registration_id}/audit")
async def get_registration_audit(
    event_id: UUID,
    registration_id: UUID,
    principal: CurrentPrincipal,
    queries: QueryService,
    db: DbSession,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> AuditHistoryResponse:
    """List the audit history of one registration, newest first."""
    # Requires view and scopes the registration to the event
    await queries.get_registration(principal, event_id, registration_id)

    entries = await AuditLogger(db).list_entries(
        resource_type="registration",
        resource_id=str(registration_id),
        limit=limit,
    )
    return AuditHistoryResponse(
        registration_id=registration_id,
        items=[AuditEntryResponse.model_validate(entry) for entry in entries],
    )


@router.get("/{event_id}/gate-scan")
async def gate_scan(
    event_id: UUID,
    principal: CurrentPrincipal,
    queries: QueryService,
    q: Annotated[str, Query(max_length=100)] = "",
) -> GateScanResponse:
    """Search registrations at the gate by number, name, phone, email or car."""
    matches = await queries.search_for_gate(principal, event_id, q)
    return GateScanResponse(
        query=q,
        items=[RegistrationResponse.model_validate(r) for r in matches],
    )


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


@router.post("/{event_id}/registrations/{registration_id}/approve")
async def approve_registration(
    event_id: UUID,
    registration_id: UUID,
    principal: CurrentPrincipal,
    lifecycle: LifecycleService,
) -> TransitionResponse:
    """Approve a registration, issuing its registration number."""
    result = await lifecycle.approve(principal, event_id, registration_id)
    return _transition_response(registration_id, result)


@router.post("/{event_id}/registrations/{registration_id}/reject")
async def reject_registration(
    event_id: UUID,
    registration_id: UUID,
    principal: CurrentPrincipal,
    lifecycle: LifecycleService,
    body: Annotated[RejectRequest | None, Body()] = None,
) -> TransitionResponse:
    """Reject a registration."""
    reason = body.reason if body else None
    result = await lifecycle.reject(principal, event_id, registration_id, reason=reason)
    return _transition_response(registration_id, result)


@router.post("/{event_id}/registrations/{registration_id}/check-in")
async def check_in_registration(
    event_id: UUID,
    registration_id: UUID,
    principal: CurrentPrincipal,
    lifecycle: LifecycleService,
    body: Annotated[CheckInRequest | None, Body()] = None,
) -> TransitionResponse:
    """Admit an approved participant at the gate."""
    verified_items = body.verified_items if body else []
    result = await lifecycle.gate_check_in(
        principal, event_id, registration_id, verified_items=verified_items
    )
    return _transition_response(registration_id, result)


@router.post("/{event_id}/registrations/{registration_id}/gate-reject")
async def gate_reject_registration(
    event_id: UUID,
    registration_id: UUID,
    principal: CurrentPrincipal,
    lifecycle: LifecycleService,
    body: Annotated[RejectRequest | None, Body()] = None,
) -> TransitionResponse:
    """Fail an approved participant's gate inspection."""
    reason = body.reason if body else None
    result = await lifecycle.gate_reject(principal, event_id, registration_id, reason=reason)
    return _transition_response(registration_id, result)
