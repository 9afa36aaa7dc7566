"""Competition rounds router.

- GET    /events/{event_id}/rounds
- POST   /events/{event_id}/rounds
- PUT    /events/{event_id}/rounds/order
- PUT    /events/{event_id}/rounds/{round_id}/status
- DELETE /events/{event_id}/rounds/{round_id}

Listing requires view; every change requires manage_rounds.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Response, status

from carshow.api.dependencies import CurrentPrincipal, RoundsService
from carshow.api.schemas.rounds import (
    CreateRoundRequest,
    ReorderRoundsRequest,
    RoundListResponse,
    RoundResponse,
    RoundStatusRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/events/{event_id}/rounds",
    tags=["rounds"],
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "No access to the event, or capability missing"},
    },
)


@router.get("")
async def list_rounds(
    event_id: UUID,
    principal: CurrentPrincipal,
    rounds: RoundsService,
) -> RoundListResponse:
    """List the event's rounds in order."""
    items = await rounds.list_rounds(principal, event_id)
    return RoundListResponse(items=[RoundResponse.model_validate(r) for r in items])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_round(
    event_id: UUID,
    body: CreateRoundRequest,
    principal: CurrentPrincipal,
    rounds: RoundsService,
) -> RoundResponse:
    """Add a round, appended last unless a position is given."""
    created = await rounds.create_round(
        principal,
        event_id,
        body.name,
        round_order=body.round_order,
        round_date=body.round_date,
    )
    return RoundResponse.model_validate(created)


@router.put("/order")
async def reorder_rounds(
    event_id: UUID,
    body: ReorderRoundsRequest,
    principal: CurrentPrincipal,
    rounds: RoundsService,
) -> RoundListResponse:
    """Put every round of the event in a new order."""
    ordered = await rounds.reorder(principal, event_id, body.round_ids)
    return RoundListResponse(items=[RoundResponse.model_validate(r) for r in ordered])


@router.put("/{round_id}/status")
async def set_round_status(
    event_id: UUID,
    round_id: UUID,
    body: RoundStatusRequest,
    principal: CurrentPrincipal,
    rounds: RoundsService,
) -> RoundResponse:
    """Move a round to pending, active or completed."""
    updated = await rounds.set_status(principal, event_id, round_id, body.status)
    return RoundResponse.model_validate(updated)


@router.delete("/{round_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_round(
    event_id: UUID,
    round_id: UUID,
    principal: CurrentPrincipal,
    rounds: RoundsService,
) -> Response:
    """Delete a round; later rounds move up."""
    await rounds.delete_round(principal, event_id, round_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
