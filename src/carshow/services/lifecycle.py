"""Registration lifecycle state machine.

This module implements the review and gate transitions of a registration:
- approve / reject (primary status, reversible)
- gate check-in / gate rejection (inspection sub-state of approved entries)
- participant and vehicle detail edits, which never touch review or gate state
- idempotent registration number allocation via a conditional update
- one audit entry per attempt, including refused and failed ones
- participant notification after the state change is committed
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.attributes import set_committed_value

from carshow.db.models.base import (
    AuditOutcome,
    CheckInStatus,
    InspectionStatus,
    RegistrationStatus,
)
from carshow.services.authz import EventCapability
from carshow.services.notifications import NOTIFY_FAILED, NotificationKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from carshow.db.models.events import Event, Registration
    from carshow.services.audit_log import AuditLogger
    from carshow.services.authz import EventAccessService, Principal
    from carshow.services.notifications import NotificationTrigger, NotifyResult

logger = logging.getLogger(__name__)

REGISTRATION_NUMBER_PREFIX = "BN"
REGISTRATION_NUMBER_SERIES = "RW2"
MAX_NUMBER_ATTEMPTS = 5
GATE_REJECTION_DEFAULT_REASON = "Rejected at gate"
UPDATE_AUDIT_ACTION = "update_registration"


class RegistrationAction(str, Enum):
    """Transitions a registration can go through."""

    APPROVE = "approve"
    REJECT = "reject"
    GATE_CHECK_IN = "gate_check_in"
    GATE_REJECT = "gate_reject"


@dataclass(frozen=True, slots=True)
class TransitionResult:
    """Result of a successful transition.

    Attributes:
        success: Always True; failed attempts raise instead.
        action: The transition that was applied.
        previous: Registration state before the transition.
        current: Registration state after the transition.
        registration_number: Number held by the registration afterwards.
        warning: NOTIFY_FAILED if the participant could not be notified.
        notification: Notifier outcome for approve/reject, None otherwise.
    """

    success: bool
    action: RegistrationAction
    previous: dict[str, Any]
    current: dict[str, Any]
    registration_number: str | None
    warning: str | None = None
    notification: NotifyResult | None = field(default=None, compare=False)

    @property
    def status_changed(self) -> bool:
        return self.previous.get("status") != self.current.get("status")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class LifecycleError(Exception):
    """Base exception for registration lifecycle failures."""

    code: ClassVar[str] = "LIFECYCLE_ERROR"


class InvalidTransitionError(LifecycleError):
    """Raised when a transition is not legal from the registration's state."""

    code = "INVALID_TRANSITION"

    def __init__(
        self,
        action: RegistrationAction,
        from_state: RegistrationStatus,
        reason: str | None = None,
    ) -> None:
        self.action = action
        self.from_state = from_state
        self.reason = reason or f"Cannot {action.value} a {from_state.value} registration"
        super().__init__(self.reason)


class RegistrationNotFoundError(LifecycleError):
    """Raised when a registration does not exist in the target event."""

    code = "NOT_FOUND"

    def __init__(self, registration_id: UUID) -> None:
        self.registration_id = registration_id
        super().__init__(f"Registration {registration_id} not found")


class EventNotFoundError(LifecycleError):
    """Raised when an event does not exist."""

    code = "NOT_FOUND"

    def __init__(self, event_id: UUID) -> None:
        self.event_id = event_id
        super().__init__(f"Event {event_id} not found")


class RegistrationNumberUnavailableError(LifecycleError):
    """Raised when no free registration number could be drawn."""

    code = "NUMBER_UNAVAILABLE"


class InvalidRegistrationUpdateError(LifecycleError):
    """Raised when a details edit names no field, or one that is not editable."""

    code = "INVALID_UPDATE"


# ---------------------------------------------------------------------------
# Registration numbers
# ---------------------------------------------------------------------------


def generate_registration_number(event_date: date | None = None) -> str:
    """Draw a candidate registration number.

    Format is ``BN-<DDMMYYYY>-RW2-<NNNN>`` with NNNN in 1000..9999. The date
    is the event date, or today (UTC) when the event has none.
    """
    day = event_date or datetime.now(UTC).date()
    suffix = 1000 + secrets.randbelow(9000)
    return (
        f"{REGISTRATION_NUMBER_PREFIX}-{day.strftime('%d%m%Y')}-"
        f"{REGISTRATION_NUMBER_SERIES}-{suffix}"
    )


# ---------------------------------------------------------------------------
# Lifecycle service
# ---------------------------------------------------------------------------


class RegistrationLifecycleService:
    """Applies review and gate transitions to registrations.

    Every call runs: capability check, load, state validation, change,
    notification (approve/reject only), audit. Denials are audited by the
    access service; every other outcome is audited here, so each attempt
    leaves exactly one audit entry.

    The state change is committed before the participant is notified, so a
    notifier failure can only downgrade the result to a NOTIFY_FAILED
    warning.
    """

    # Primary statuses each action may start from
    ALLOWED_FROM: ClassVar[dict[RegistrationAction, frozenset[RegistrationStatus]]] = {
        RegistrationAction.APPROVE: frozenset(
            {RegistrationStatus.PENDING, RegistrationStatus.REJECTED}
        ),
        RegistrationAction.REJECT: frozenset(
            {RegistrationStatus.PENDING, RegistrationStatus.APPROVED}
        ),
        RegistrationAction.GATE_CHECK_IN: frozenset({RegistrationStatus.APPROVED}),
        RegistrationAction.GATE_REJECT: frozenset({RegistrationStatus.APPROVED}),
    }

    REQUIRED_CAPABILITY: ClassVar[dict[RegistrationAction, EventCapability]] = {
        RegistrationAction.APPROVE: EventCapability.APPROVE,
        RegistrationAction.REJECT: EventCapability.REJECT,
        RegistrationAction.GATE_CHECK_IN: EventCapability.GATE_SCAN,
        RegistrationAction.GATE_REJECT: EventCapability.GATE_SCAN,
    }

    AUDIT_ACTIONS: ClassVar[dict[RegistrationAction, str]] = {
        RegistrationAction.APPROVE: "approve_registration",
        RegistrationAction.REJECT: "reject_registration",
        RegistrationAction.GATE_CHECK_IN: "check_in_participant",
        RegistrationAction.GATE_REJECT: "reject_at_gate",
    }

    NOTIFICATIONS: ClassVar[dict[RegistrationAction, NotificationKind]] = {
        RegistrationAction.APPROVE: NotificationKind.APPROVED,
        RegistrationAction.REJECT: NotificationKind.REJECTED,
    }

    # Participant and vehicle details; review and gate state are not editable
    EDITABLE_FIELDS: ClassVar[tuple[str, ...]] = (
        "full_name",
        "email",
        "country_code",
        "phone_number",
        "car_make",
        "car_model",
        "car_year",
    )

    def __init__(
        self,
        session: AsyncSession,
        access: EventAccessService,
        audit: AuditLogger,
        notifications: NotificationTrigger,
    ) -> None:
        """Initialize the lifecycle service.

        Args:
            session: SQLAlchemy async session for database operations.
            access: Event access service used for capability checks.
            audit: Audit logger sharing the same session.
            notifications: Trigger for participant notifications.
        """
        self._session = session
        self._access = access
        self._audit = audit
        self._notifications = notifications

    async def approve(
        self,
        principal: Principal,
        event_id: UUID,
        registration_id: UUID,
    ) -> TransitionResult:
        """Approve a pending or rejected registration.

        Assigns a registration number on first approval; a re-approval keeps
        the number issued earlier.
        """
        return await self._transition(
            principal, event_id, registration_id, RegistrationAction.APPROVE
        )

    async def reject(
        self,
        principal: Principal,
        event_id: UUID,
        registration_id: UUID,
        reason: str | None = None,
    ) -> TransitionResult:
        """Reject a pending or approved registration. The number is retained."""
        return await self._transition(
            principal, event_id, registration_id, RegistrationAction.REJECT, reason=reason
        )

    async def gate_check_in(
        self,
        principal: Principal,
        event_id: UUID,
        registration_id: UUID,
        verified_items: Sequence[str] = (),
    ) -> TransitionResult:
        """Admit an approved participant at the gate (inspection passed)."""
        return await self._transition(
            principal,
            event_id,
            registration_id,
            RegistrationAction.GATE_CHECK_IN,
            verified_items=verified_items,
        )

    async def gate_reject(
        self,
        principal: Principal,
        event_id: UUID,
        registration_id: UUID,
        reason: str | None = None,
    ) -> TransitionResult:
        """Fail an approved participant's inspection at the gate.

        The primary status stays approved; entry is barred by the inspection
        status alone.
        """
        return await self._transition(
            principal, event_id, registration_id, RegistrationAction.GATE_REJECT, reason=reason
        )

    async def update_registration(
        self,
        principal: Principal,
        event_id: UUID,
        registration_id: UUID,
        changes: Mapping[str, Any],
    ) -> Registration:
        """Edit a registration's participant and vehicle details.

        Only ``EDITABLE_FIELDS`` can be changed here. The attempt is audited
        with the edited fields before and after.

        Args:
            principal: Authenticated principal.
            event_id: Event the registration belongs to.
            registration_id: Registration to edit.
            changes: Field name to new value.

        Returns:
            The updated registration.

        Raises:
            InvalidRegistrationUpdateError: If no field is given, a field is not
                editable, or the participant name is cleared.
            RegistrationNotFoundError: If the registration is not in the event.
        """
        resource_id = str(registration_id)

        await self._access.require_capability(
            principal,
            event_id,
            EventCapability.EDIT_REGISTRATION,
            action=UPDATE_AUDIT_ACTION,
            resource_type="registration",
            resource_id=resource_id,
            snapshot=partial(
                self._current_state, event_id, registration_id, fields=self.EDITABLE_FIELDS
            ),
        )

        try:
            registration = await self.get_registration(event_id, registration_id)
        except RegistrationNotFoundError as exc:
            await self._record_failure(
                principal, UPDATE_AUDIT_ACTION, event_id, resource_id, exc.code
            )
            raise

        invalid_reason = self._check_update(changes)
        if invalid_reason is not None:
            await self._record_failure(
                principal,
                UPDATE_AUDIT_ACTION,
                event_id,
                resource_id,
                InvalidRegistrationUpdateError.code,
                state=_field_values(registration, self.EDITABLE_FIELDS),
                reason=invalid_reason,
            )
            raise InvalidRegistrationUpdateError(invalid_reason)

        before = _field_values(registration, changes)
        for name, value in changes.items():
            setattr(registration, name, value)
        registration.updated_at = datetime.now(UTC)
        await self._session.flush()
        after = _field_values(registration, changes)

        await self._audit.record(
            actor_id=principal.admin_user_id,
            action=UPDATE_AUDIT_ACTION,
            resource_type="registration",
            resource_id=resource_id,
            details={"event_id": event_id, "before": before, "after": after},
        )

        logger.info(
            "Registration details updated",
            extra={"registration_id": resource_id, "fields": sorted(changes)},
        )
        return registration

    def _check_update(self, changes: Mapping[str, Any]) -> str | None:
        if not changes:
            return "No fields to update"

        not_editable = sorted(set(changes) - set(self.EDITABLE_FIELDS))
        if not_editable:
            return f"Fields cannot be edited: {', '.join(not_editable)}"

        if "full_name" in changes and not changes["full_name"]:
            return "full_name cannot be empty"

        return None

    async def get_registration(self, event_id: UUID, registration_id: UUID) -> Registration:
        """Load a registration scoped to an event.

        Raises:
            RegistrationNotFoundError: If it does not exist or belongs to another event.
        """
        from carshow.db.models.events import Registration

        registration = await self._session.get(Registration, registration_id)
        if registration is None or registration.event_id != event_id:
            raise RegistrationNotFoundError(registration_id)
        return registration

    def check_transition(
        self, action: RegistrationAction, registration: Registration
    ) -> str | None:
        """Validate an action against the registration's current state.

        Returns:
            None if the transition is legal, otherwise the reason it is not.
        """
        if registration.status not in self.ALLOWED_FROM[action]:
            return f"Cannot {action.value} a {registration.status.value} registration"

        if (
            action is RegistrationAction.GATE_CHECK_IN
            and registration.check_in_status == CheckInStatus.CHECKED_IN
        ):
            return "Participant is already checked in"

        if (
            action is RegistrationAction.GATE_REJECT
            and registration.inspection_status == InspectionStatus.REJECTED
        ):
            return "Participant was already rejected at the gate"

        return None

    async def _transition(
        self,
        principal: Principal,
        event_id: UUID,
        registration_id: UUID,
        action: RegistrationAction,
        *,
        reason: str | None = None,
        verified_items: Sequence[str] = (),
    ) -> TransitionResult:
        audit_action = self.AUDIT_ACTIONS[action]
        resource_id = str(registration_id)

        # Raises (and audits) before anything is written
        await self._access.require_capability(
            principal,
            event_id,
            self.REQUIRED_CAPABILITY[action],
            action=audit_action,
            resource_type="registration",
            resource_id=resource_id,
            snapshot=partial(self._current_state, event_id, registration_id),
        )

        try:
            registration = await self.get_registration(event_id, registration_id)
        except RegistrationNotFoundError as exc:
            await self._record_failure(principal, audit_action, event_id, resource_id, exc.code)
            raise

        before = registration.snapshot()

        invalid_reason = self.check_transition(action, registration)
        if invalid_reason is not None:
            logger.warning(
                "Invalid registration transition attempted",
                extra={
                    "registration_id": resource_id,
                    "action": action.value,
                    "status": registration.status.value,
                },
            )
            await self._record_failure(
                principal,
                audit_action,
                event_id,
                resource_id,
                InvalidTransitionError.code,
                state=before,
                reason=invalid_reason,
            )
            raise InvalidTransitionError(action, registration.status, invalid_reason)

        try:
            event = await self._get_event(event_id)
            if action is RegistrationAction.APPROVE:
                await self._assign_registration_number(registration, event)
        except (EventNotFoundError, RegistrationNumberUnavailableError) as exc:
            # Number writes ran in rolled-back savepoints; the row is unchanged
            await self._record_failure(
                principal,
                audit_action,
                event_id,
                resource_id,
                exc.code,
                state=before,
                reason=str(exc),
            )
            raise

        now = datetime.now(UTC)

        if action is RegistrationAction.APPROVE:
            registration.status = RegistrationStatus.APPROVED
            registration.approved_at = now
        elif action is RegistrationAction.REJECT:
            registration.status = RegistrationStatus.REJECTED
            registration.rejected_at = now
            registration.rejection_reason = reason
        elif action is RegistrationAction.GATE_CHECK_IN:
            registration.check_in_status = CheckInStatus.CHECKED_IN
            registration.inspection_status = InspectionStatus.PASSED
            registration.checked_in_at = now
        else:
            registration.inspection_status = InspectionStatus.REJECTED
            registration.rejection_reason = reason or GATE_REJECTION_DEFAULT_REASON

        registration.updated_at = now
        await self._session.flush()
        after = registration.snapshot()

        notification: NotifyResult | None = None
        kind = self.NOTIFICATIONS.get(action)
        if kind is not None:
            # The participant is only told about a decision that is durable
            await self._session.commit()
            notification = await self._notifications.fire(kind, registration, event)

        warning = NOTIFY_FAILED if notification is not None and not notification.success else None

        details: dict[str, Any] = {"event_id": event_id, "before": before, "after": after}
        if reason is not None:
            details["reason"] = reason
        if action is RegistrationAction.GATE_CHECK_IN:
            details["verified_items"] = list(verified_items)
        if notification is not None:
            details["notification"] = notification.as_dict()

        outcome = AuditOutcome.SUCCESS
        if warning is not None or action is RegistrationAction.GATE_REJECT:
            outcome = AuditOutcome.WARNING

        await self._audit.record(
            actor_id=principal.admin_user_id,
            action=audit_action,
            resource_type="registration",
            resource_id=resource_id,
            details=details,
            outcome=outcome,
        )

        logger.info(
            "Registration transition completed",
            extra={
                "registration_id": resource_id,
                "event_id": str(event_id),
                "action": action.value,
                "from_status": before["status"],
                "to_status": after["status"],
                "warning": warning,
            },
        )

        return TransitionResult(
            success=True,
            action=action,
            previous=before,
            current=after,
            registration_number=registration.registration_number,
            warning=warning,
            notification=notification,
        )

    async def _current_state(
        self,
        event_id: UUID,
        registration_id: UUID,
        fields: Iterable[str] | None = None,
    ) -> dict[str, Any] | None:
        """Registration state for denial audit entries, None if it is not in the event."""
        try:
            registration = await self.get_registration(event_id, registration_id)
        except RegistrationNotFoundError:
            return None
        if fields is not None:
            return _field_values(registration, fields)
        return registration.snapshot()

    async def _record_failure(
        self,
        principal: Principal,
        audit_action: str,
        event_id: UUID,
        resource_id: str,
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
            action=audit_action,
            resource_type="registration",
            resource_id=resource_id,
            details=details,
            outcome=AuditOutcome.FAILED,
        )

    async def _get_event(self, event_id: UUID) -> Event:
        from carshow.db.models.events import Event

        event = await self._session.get(Event, event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    async def _assign_registration_number(self, registration: Registration, event: Event) -> str:
        """Give the registration a number unless it already holds one.

        The write only applies while the stored number is NULL, so concurrent
        approvals converge on whichever number landed first. The stored
        value is read back in every case.
        """
        from carshow.db.models.events import Registration

        if registration.registration_number:
            return registration.registration_number

        for attempt in range(1, MAX_NUMBER_ATTEMPTS + 1):
            candidate = generate_registration_number(event.event_date)
            try:
                async with self._session.begin_nested():
                    await self._session.execute(
                        update(Registration)
                        .where(
                            Registration.registration_id == registration.registration_id,
                            Registration.registration_number.is_(None),
                        )
                        .values(registration_number=candidate)
                    )
            except IntegrityError:
                # Another registration already holds this number
                logger.info(
                    "Registration number collision",
                    extra={
                        "registration_id": str(registration.registration_id),
                        "attempt": attempt,
                    },
                )
                continue
            break
        else:
            msg = f"No free registration number after {MAX_NUMBER_ATTEMPTS} attempts"
            raise RegistrationNumberUnavailableError(msg)

        result = await self._session.execute(
            select(Registration.registration_number).where(
                Registration.registration_id == registration.registration_id
            )
        )
        number = result.scalar_one()
        set_committed_value(registration, "registration_number", number)
        return number


def _field_values(registration: Registration, fields: Iterable[str]) -> dict[str, Any]:
    return {name: getattr(registration, name) for name in fields}
