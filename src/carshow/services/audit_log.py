"""Audit logging for privileged actions.

Every attempted privileged action (including denials) is written as one
AuditEntry. Writing is best effort from the caller's point of view: the
insert runs inside a SAVEPOINT, and if it fails the entry is emitted on the
``carshow.audit.fallback`` logger instead, leaving the caller's transaction
and business change intact.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from carshow.db.models.base import AuditOutcome

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Separate channel so operators can route lost audit entries to their own sink
fallback_logger = logging.getLogger("carshow.audit.fallback")


@dataclass(frozen=True, slots=True)
class AuditRecord:
    """Immutable view of a stored audit entry.

    Attributes:
        entry_id: Unique identifier for this entry.
        actor_id: Admin user who acted, or None for system actions.
        action: Action name (e.g. approve_registration).
        resource_type: Kind of resource acted on.
        resource_id: Identifier of the resource.
        details: before/after snapshots and action context.
        outcome: success, failed or warning.
        entry_hash: SHA-256 of the canonical entry content.
        created_at: When the entry was written.
    """

    entry_id: uuid.UUID
    actor_id: uuid.UUID | None
    action: str
    resource_type: str
    resource_id: str
    details: dict[str, Any] | None
    outcome: AuditOutcome
    entry_hash: str
    created_at: datetime


class AuditLogger:
    """Append-only audit writer.

    Example:
        audit = AuditLogger(session)
        await audit.record(
            actor_id=principal.admin_user_id,
            action="approve_registration",
            resource_type="registration",
            resource_id=str(registration.registration_id),
            details={"before": before, "after": after},
            outcome=AuditOutcome.SUCCESS,
        )
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the audit logger.

        Args:
            session: SQLAlchemy async session shared with the calling service.
        """
        self._session = session

    async def record(
        self,
        *,
        actor_id: uuid.UUID | None,
        action: str,
        resource_type: str,
        resource_id: str,
        details: dict[str, Any] | None = None,
        outcome: AuditOutcome = AuditOutcome.SUCCESS,
    ) -> AuditRecord | None:
        """Write one audit entry.

        Never raises for storage failures; those are reported on the
        fallback logger and None is returned.

        Args:
            actor_id: Acting admin user, or None for system actions.
            action: Action name.
            resource_type: Kind of resource.
            resource_id: Resource identifier.
            details: JSON-serializable context (before/after, reason, ...).
            outcome: Outcome of the attempt.

        Returns:
            The stored record, or None if it could not be written.
        """
        from carshow.db.models.audit import AuditEntry

        entry_id = uuid.uuid4()
        created_at = datetime.now(UTC)
        payload = _jsonable(details) if details is not None else None
        entry_hash = compute_entry_hash(
            entry_id=entry_id,
            actor_id=actor_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=payload,
            outcome=outcome,
            created_at=created_at,
        )

        entry = AuditEntry(
            entry_id=entry_id,
            created_at=created_at,
            actor_id=actor_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=payload,
            outcome=outcome,
            entry_hash=entry_hash,
        )

        try:
            async with self._session.begin_nested():
                self._session.add(entry)
                await self._session.flush()
        except SQLAlchemyError as e:
            fallback_logger.error(
                "Audit entry could not be stored: action=%s resource=%s/%s outcome=%s "
                "actor=%s details=%s error=%s",
                action,
                resource_type,
                resource_id,
                outcome.value,
                actor_id,
                json.dumps(payload, sort_keys=True),
                e,
            )
            return None

        logger.debug(
            "Audit entry recorded",
            extra={"action": action, "resource_id": resource_id, "outcome": outcome.value},
        )

        return AuditRecord(
            entry_id=entry_id,
            actor_id=actor_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=payload,
            outcome=outcome,
            entry_hash=entry_hash,
            created_at=created_at,
        )

    async def list_entries(
        self,
        *,
        resource_type: str,
        resource_id: str,
        limit: int = 100,
    ) -> list[AuditRecord]:
        """List entries for one resource, newest first.

        Args:
            resource_type: Kind of resource.
            resource_id: Resource identifier.
            limit: Maximum number of entries to return.

        Returns:
            Matching audit records.
        """
        from sqlalchemy import select

        from carshow.db.models.audit import AuditEntry

        query = (
            select(AuditEntry)
            .where(
                AuditEntry.resource_type == resource_type,
                AuditEntry.resource_id == resource_id,
            )
            .order_by(AuditEntry.created_at.desc())
            .limit(limit)
        )

        result = await self._session.execute(query)
        return [
            AuditRecord(
                entry_id=r.entry_id,
                actor_id=r.actor_id,
                action=r.action,
                resource_type=r.resource_type,
                resource_id=r.resource_id,
                details=r.details,
                outcome=r.outcome,
                entry_hash=r.entry_hash,
                created_at=r.created_at,
            )
            for r in result.scalars().all()
        ]


def compute_entry_hash(
    *,
    entry_id: uuid.UUID,
    actor_id: uuid.UUID | None,
    action: str,
    resource_type: str,
    resource_id: str,
    details: dict[str, Any] | None,
    outcome: AuditOutcome,
    created_at: datetime,
) -> str:
    """Compute the SHA-256 of an entry's canonical JSON form.

    Keys are sorted and whitespace stripped so the digest can be recomputed
    from a stored row for verification.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    canonical = {
        "action": action,
        "actor_id": str(actor_id) if actor_id else None,
        "created_at": created_at.isoformat(),
        "details": details,
        "entry_id": str(entry_id),
        "outcome": outcome.value,
        "resource_id": resource_id,
        "resource_type": resource_type,
    }
    canonical_json = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


def verify_entry(record: AuditRecord) -> bool:
    """Check that a stored entry still matches its hash."""
    expected = compute_entry_hash(
        entry_id=record.entry_id,
        actor_id=record.actor_id,
        action=record.action,
        resource_type=record.resource_type,
        resource_id=record.resource_id,
        details=record.details,
        outcome=record.outcome,
        created_at=record.created_at,
    )
    return expected == record.entry_hash


def _jsonable(details: dict[str, Any]) -> dict[str, Any]:
    """Round-trip through JSON so UUIDs, enums and datetimes become strings."""
    return json.loads(json.dumps(details, default=_json_default))


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    return str(value)
