"""Event staff assignment router.

- GET    /events/{event_id}/staff
- PUT    /events/{event_id}/staff/{admin_user_id}
- DELETE /events/{event_id}/staff/{admin_user_id}

All routes require the manage_staff capability on the event.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Response, status

from carshow.api.dependencies import CurrentPrincipal, StaffService
from carshow.api.schemas.events import (
    AssignStaffRequest,
    StaffListResponse,
    StaffMemberResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/events/{event_id}/staff",
    tags=["staff"],
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "No access to the event, or capability missing"},
    },
)


@router.get("")
async def list_staff(
    event_id: UUID,
    principal: CurrentPrincipal,
    staff: StaffService,
) -> StaffListResponse:
    """List admin users with their role on the event."""
    members = await staff.list_staff(principal, event_id)
    return StaffListResponse(items=[StaffMemberResponse.model_validate(m) for m in members])


@router.put("/{admin_user_id}")
async def assign_staff(
    event_id: UUID,
    admin_user_id: UUID,
    body: AssignStaffRequest,
    principal: CurrentPrincipal,
    staff: StaffService,
) -> StaffMemberResponse:
    """Assign or change an admin user's role on the event."""
    member = await staff.assign(principal, event_id, admin_user_id, body.event_role)
    return StaffMemberResponse.model_validate(member)


@router.delete("/{admin_user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unassign_staff(
    event_id: UUID,
    admin_user_id: UUID,
    principal: CurrentPrincipal,
    staff: StaffService,
) -> Response:
    """Remove an admin user's role on the event. Idempotent."""
    await staff.unassign(principal, event_id, admin_user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
