"""Pydantic schemas for competition round endpoints."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from carshow.db.models.base import RoundStatus


class RoundResponse(BaseModel):
    """One round of an event."""

    model_config = ConfigDict(from_attributes=True)

    round_id: UUID
    event_id: UUID
    name: str
    round_order: int
    status: RoundStatus
    round_date: date | None = None


class RoundListResponse(BaseModel):
    """Rounds of an event, first to last."""

    items: list[RoundResponse]


class CreateRoundRequest(BaseModel):
    """Body for adding a round."""

    name: str = Field(..., min_length=1, max_length=255)
    round_order: int | None = Field(
        None,
        ge=1,
        description="1-based position; the round is appended when omitted",
    )
    round_date: date | None = None

    model_config = ConfigDict(extra="forbid")


class RoundStatusRequest(BaseModel):
    """Body for moving a round to another status."""

    status: RoundStatus

    model_config = ConfigDict(extra="forbid")


class ReorderRoundsRequest(BaseModel):
    """Body for reordering: every round id of the event, first to last."""

    round_ids: list[UUID] = Field(..., max_length=200)

    model_config = ConfigDict(extra="forbid")
