"""Competition rounds of an event.

Rounds are read with the view capability and changed with manage_rounds.
Orders stay dense (1..n) per event: creating, deleting and reordering
renumber the neighbouring rounds. Every change is audited with before and
after state, including refused ones.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import partial
from typing import TYPE_CHECKING, Any, ClassVar
from uuid import uuid4

from sqlalchemy import select

from carshow.db.models.base import AuditOutcome, RoundStatus
from carshow.services.authz import EventCapability

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import date
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from carshow.db.models.rounds import Round
    from carshow.services.audit_log import AuditLogger
    from carshow.services.authz import EventAccessService, Principal

logger = logging.getLogger(__name__)


class RoundError(Exception):
    """Base exception for round management failures."""

    code: ClassVar[str] = "ROUND_ERROR"


class RoundNotFoundError(RoundError):
    """Raised when a round does not exist in the target event."""

    code = "NOT_FOUND"

    def __init__(self, round_id: UUID) -> None:
        self.round_id = round_id
        super().__init__(f"Round {round_id} not found")


class InvalidRoundOrderError(RoundError):
    """Raised when a position or a new ordering does not fit the event's rounds."""

    code = "INVALID_ROUND_ORDER"


class RoundService:
    """Lists and manages the rounds of an event."""

    def __init__(
        self,
        session: AsyncSession,
        access: EventAccessService,
        audit: AuditLogger,
    ) -> None:
        self._session = session
        self._access = access
        self._audit = audit

    async def list_rounds(self, principal: Principal, event_id: UUID) -> list[Round]:
        """List the event's rounds in order."""
        await self._access.require_capability(
            principal, event_id, EventCapability.VIEW, action="list_rounds"
        )
        return await self._load_rounds(event_id)

    async def create_round(
        self,
        principal: Principal,
        event_id: UUID,
        name: str,
        *,
        round_order: int | None = None,
        round_date: date | None = None,
    ) -> Round:
        """Add a pending round.

        Args:
            principal: Authenticated principal.
            event_id: Target event.
            name: Display name of the round.
            round_order: 1-based position; appended last when None. Rounds at
                or after the position move down by one.
            round_date: Optional date the round runs.

        Raises:
            InvalidRoundOrderError: If the position is outside 1..n+1.
        """
        from carshow.db.models.rounds import Round

        await self._require_manage(principal, event_id, "create_round", "event", str(event_id))

        rounds = await self._load_rounds(event_id)
        before = _order_of(rounds)
        position = len(rounds) + 1 if round_order is None else round_order

        if not 1 <= position <= len(rounds) + 1:
            reason = f"Position must be between 1 and {len(rounds) + 1}"
            await self._record_failure(
                principal,
                "create_round",
                "event",
                str(event_id),
                event_id,
                InvalidRoundOrderError.code,
                state=before,
                reason=reason,
            )
            raise InvalidRoundOrderError(reason)

        now = datetime.now(UTC)
        for existing in rounds:
            if existing.round_order >= position:
                existing.round_order += 1
                existing.updated_at = now

        created = Round(
            round_id=uuid4(),
            event_id=event_id,
            name=name,
            round_order=position,
            status=RoundStatus.PENDING,
            round_date=round_date,
        )
        self._session.add(created)
        await self._session.flush()

        await self._audit.record(
            actor_id=principal.admin_user_id,
            action="create_round",
            resource_type="round",
            resource_id=str(created.round_id),
            details={"event_id": event_id, "before": None, "after": created.snapshot()},
        )
        logger.info(
            "Round created",
            extra={"event_id": str(event_id), "round_id": str(created.round_id)},
        )
        return created

    async def delete_round(self, principal: Principal, event_id: UUID, round_id: UUID) -> None:
        """Delete a round and close the gap it leaves in the order.

        Raises:
            RoundNotFoundError: If the round is not in the event.
        """
        await self._require_manage(
            principal, event_id, "delete_round", "round", str(round_id), round_id=round_id
        )
        target = await self._get_round_or_fail(principal, "delete_round", event_id, round_id)
        before = target.snapshot()
        removed_order = target.round_order

        await self._session.delete(target)
        now = datetime.now(UTC)
        for existing in await self._load_rounds(event_id):
            if existing.round_id != round_id and existing.round_order > removed_order:
                existing.round_order -= 1
                existing.updated_at = now
        await self._session.flush()

        await self._audit.record(
            actor_id=principal.admin_user_id,
            action="delete_round",
            resource_type="round",
            resource_id=str(round_id),
            details={"event_id": event_id, "before": before, "after": None},
        )
        logger.info("Round deleted", extra={"event_id": str(event_id), "round_id": str(round_id)})

    async def set_status(
        self,
        principal: Principal,
        event_id: UUID,
        round_id: UUID,
        status: RoundStatus,
    ) -> Round:
        """Move a round to pending, active or completed.

        Raises:
            RoundNotFoundError: If the round is not in the event.
        """
        await self._require_manage(
            principal, event_id, "set_round_status", "round", str(round_id), round_id=round_id
        )
        target = await self._get_round_or_fail(principal, "set_round_status", event_id, round_id)
        before = target.snapshot()

        target.status = status
        target.updated_at = datetime.now(UTC)
        await self._session.flush()

        await self._audit.record(
            actor_id=principal.admin_user_id,
            action="set_round_status",
            resource_type="round",
            resource_id=str(round_id),
            details={"event_id": event_id, "before": before, "after": target.snapshot()},
        )
        return target

    async def reorder(
        self,
        principal: Principal,
        event_id: UUID,
        round_ids: Sequence[UUID],
    ) -> list[Round]:
        """Put the event's rounds in the given order.

        Args:
            principal: Authenticated principal.
            event_id: Target event.
            round_ids: Every round of the event, each exactly once, first to last.

        Returns:
            The rounds in their new order.

        Raises:
            InvalidRoundOrderError: If round_ids is not exactly the event's rounds.
        """
        await self._require_manage(principal, event_id, "reorder_rounds", "event", str(event_id))

        rounds = await self._load_rounds(event_id)
        before = _order_of(rounds)
        by_id = {r.round_id: r for r in rounds}

        if len(round_ids) != len(by_id) or set(round_ids) != set(by_id):
            reason = "New order must list every round of the event exactly once"
            await self._record_failure(
                principal,
                "reorder_rounds",
                "event",
                str(event_id),
                event_id,
                InvalidRoundOrderError.code,
                state=before,
                reason=reason,
            )
            raise InvalidRoundOrderError(reason)

        now = datetime.now(UTC)
        ordered = [by_id[round_id] for round_id in round_ids]
        for position, existing in enumerate(ordered, start=1):
            if existing.round_order != position:
                existing.round_order = position
                existing.updated_at = now
        await self._session.flush()

        await self._audit.record(
            actor_id=principal.admin_user_id,
            action="reorder_rounds",
            resource_type="event",
            resource_id=str(event_id),
            details={"event_id": event_id, "before": before, "after": _order_of(ordered)},
        )
        return ordered

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _require_manage(
        self,
        principal: Principal,
        event_id: UUID,
        action: str,
        resource_type: str,
        resource_id: str,
        *,
        round_id: UUID | None = None,
    ) -> None:
        if round_id is not None:
            snapshot = partial(self._round_state, event_id, round_id)
        else:
            snapshot = partial(self._order_state, event_id)

        await self._access.require_capability(
            principal,
            event_id,
            EventCapability.MANAGE_ROUNDS,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            snapshot=snapshot,
        )

    async def _load_rounds(self, event_id: UUID) -> list[Round]:
        from carshow.db.models.rounds import Round

        result = await self._session.execute(
            select(Round).where(Round.event_id == event_id).order_by(Round.round_order)
        )
        return list(result.scalars().all())

    async def _get_round(self, event_id: UUID, round_id: UUID) -> Round | None:
        from carshow.db.models.rounds import Round

        found = await self._session.get(Round, round_id)
        if found is None or found.event_id != event_id:
            return None
        return found

    async def _get_round_or_fail(
        self, principal: Principal, action: str, event_id: UUID, round_id: UUID
    ) -> Round:
        found = await self._get_round(event_id, round_id)
        if found is None:
            await self._record_failure(
                principal, action, "round", str(round_id), event_id, RoundNotFoundError.code
            )
            raise RoundNotFoundError(round_id)
        return found

    async def _round_state(self, event_id: UUID, round_id: UUID) -> dict[str, Any] | None:
        found = await self._get_round(event_id, round_id)
        return found.snapshot() if found is not None else None

    async def _order_state(self, event_id: UUID) -> dict[str, Any]:
        return _order_of(await self._load_rounds(event_id))

    async def _record_failure(
        self,
        principal: Principal,
        action: str,
        resource_type: str,
        resource_id: str,
        event_id: UUID,
        error: str,
        *,
        state: dict[str, Any] | None = None,
        reason: str | None = None,
    ) -> None:
        details: dict[str, Any] = {
            "event_id": event_id,
            "error": error,
            "before": state,
            "after": state,
        }
        if reason is not None:
            details["reason"] = reason

        await self._audit.record(
            actor_id=principal.admin_user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details,
            outcome=AuditOutcome.FAILED,
        )


def _order_of(rounds: Sequence[Round]) -> dict[str, Any]:
    return {"order": [str(r.round_id) for r in rounds]}
