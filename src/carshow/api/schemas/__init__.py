"""Pydantic schemas for the carshow API.

This package contains request/response schemas organized by API namespace.
"""

from carshow.api.schemas.auth import (
    EventRoleEntry,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    PrincipalResponse,
)
from carshow.api.schemas.events import (
    AssignStaffRequest,
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
    StaffListResponse,
    StaffMemberResponse,
    TransitionResponse,
)
from carshow.api.schemas.rounds import (
    CreateRoundRequest,
    ReorderRoundsRequest,
    RoundListResponse,
    RoundResponse,
    RoundStatusRequest,
)

__all__ = [
    "AssignStaffRequest",
    "AuditEntryResponse",
    "AuditHistoryResponse",
    "CheckInRequest",
    "CreateRoundRequest",
    "EventResponse",
    "EventRoleEntry",
    "GateScanResponse",
    "LoginRequest",
    "LoginResponse",
    "LogoutResponse",
    "PrincipalResponse",
    "RegistrationListResponse",
    "RegistrationResponse",
    "RegistrationStatsResponse",
    "RegistrationUpdateRequest",
    "RejectRequest",
    "ReorderRoundsRequest",
    "RoundListResponse",
    "RoundResponse",
    "RoundStatusRequest",
    "StaffListResponse",
    "StaffMemberResponse",
    "TransitionResponse",
]
