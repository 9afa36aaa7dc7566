"""carshow service layer.

This package contains the business logic behind the staff API:
- SessionService: Server-side sessions and identity resolution
- EventAccessService: Effective event roles and capability checks
- AuditLogger: Append-only audit trail with a fallback log channel
- NotificationTrigger: Participant notifications for review decisions
- RegistrationLifecycleService: Review and gate state machine
- RegistrationQueryService: Event-scoped registration reads
- StaffAssignmentService: Per-event staff roles
- RoundService: Competition rounds of an event
"""

from carshow.services.audit_log import AuditLogger, AuditRecord
from carshow.services.authz import (
    CAPABILITY_MATRIX,
    AccessError,
    EventAccessService,
    EventCapability,
    ForbiddenError,
    NoEventAccessError,
    NotAuthenticatedError,
    Principal,
    authorize,
)
from carshow.services.lifecycle import (
    InvalidTransitionError,
    RegistrationLifecycleService,
    RegistrationNotFoundError,
    TransitionResult,
)
from carshow.services.notifications import (
    NOTIFY_FAILED,
    EmailNotifier,
    NotificationKind,
    NotificationTrigger,
    NotifyResult,
    NullNotifier,
    build_notifier,
)
from carshow.services.registrations import RegistrationQueryService, RegistrationStats
from carshow.services.rounds import RoundService
from carshow.services.session import SessionService
from carshow.services.staff import StaffAssignmentService

__all__ = [
    "CAPABILITY_MATRIX",
    "NOTIFY_FAILED",
    "AccessError",
    "AuditLogger",
    "AuditRecord",
    "EmailNotifier",
    "EventAccessService",
    "EventCapability",
    "ForbiddenError",
    "InvalidTransitionError",
    "NoEventAccessError",
    "NotAuthenticatedError",
    "NotificationKind",
    "NotificationTrigger",
    "NotifyResult",
    "NullNotifier",
    "Principal",
    "RegistrationLifecycleService",
    "RegistrationNotFoundError",
    "RegistrationQueryService",
    "RegistrationStats",
    "RoundService",
    "SessionService",
    "StaffAssignmentService",
    "TransitionResult",
    "authorize",
    "build_notifier",
]
