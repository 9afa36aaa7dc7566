"""FastAPI dependencies shared by the routers.

One database session per request. Domain denials and rejected transitions
still commit, because the only writes they leave behind are their audit
entries; any other failure rolls the request back.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from carshow.api.middleware.auth import bearer_scheme, extract_session_token
from carshow.api.middleware.errors import DOMAIN_ERRORS
from carshow.core.config import Settings
from carshow.core.settings import get_settings
from carshow.db import Database
from carshow.services.audit_log import AuditLogger
from carshow.services.authz import EventAccessService, Principal
from carshow.services.lifecycle import RegistrationLifecycleService
from carshow.services.notifications import (
    NotificationTrigger,
    Notifier,
    build_notifier,
)
from carshow.services.registrations import RegistrationQueryService
from carshow.services.rounds import RoundService
from carshow.services.session import SessionService
from carshow.services.staff import StaffAssignmentService

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with, or the cached environment settings."""
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


def get_database(request: Request) -> Database:
    """The database handle owned by the application lifespan."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        msg = "Database handle is not initialized"
        raise RuntimeError(msg)
    return database


async def get_db_session(
    database: Annotated[Database, Depends(get_database)],
) -> AsyncGenerator[AsyncSession, None]:
    """Yield the request's session and commit it when the request ends."""
    async with database.session() as session:
        try:
            yield session
        except DOMAIN_ERRORS:
            # Keep the audit entry written for the refused attempt
            await session.commit()
            raise
        await session.commit()


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]


async def get_current_principal(
    request: Request,
    db: DbSession,
    settings: AppSettings,
    _credentials: Annotated[
        HTTPAuthorizationCredentials | None,
        Depends(bearer_scheme),
    ] = None,
) -> Principal:
    """Resolve the request's session token to a principal.

    The _credentials parameter documents bearer auth in OpenAPI; the token
    itself is read by ``extract_session_token``, which also accepts the
    session cookie and the X-Session-Token header.

    Raises:
        NotAuthenticatedError: For any missing or invalid session.
    """
    token = extract_session_token(request, settings.session.cookie_name)
    service = SessionService(db, session_duration_hours=settings.session.duration_hours)
    principal = await service.resolve(token)
    request.state.principal = principal
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def get_notifier(request: Request, settings: AppSettings) -> Notifier:
    """The app's notifier, built from the notification settings on first use."""
    notifier = getattr(request.app.state, "notifier", None)
    if notifier is None:
        notifier = build_notifier(settings.notifications)
        request.app.state.notifier = notifier
    return notifier


def get_access_service(db: DbSession, settings: AppSettings) -> EventAccessService:
    return EventAccessService(db, settings.access.full_access_roles, AuditLogger(db))


AccessService = Annotated[EventAccessService, Depends(get_access_service)]


def get_lifecycle_service(
    db: DbSession,
    access: AccessService,
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> RegistrationLifecycleService:
    return RegistrationLifecycleService(
        db,
        access=access,
        audit=AuditLogger(db),
        notifications=NotificationTrigger(notifier),
    )


def get_query_service(db: DbSession, access: AccessService) -> RegistrationQueryService:
    return RegistrationQueryService(db, access)


def get_staff_service(db: DbSession, access: AccessService) -> StaffAssignmentService:
    return StaffAssignmentService(db, access, AuditLogger(db))


def get_round_service(db: DbSession, access: AccessService) -> RoundService:
    return RoundService(db, access, AuditLogger(db))


LifecycleService = Annotated[RegistrationLifecycleService, Depends(get_lifecycle_service)]
QueryService = Annotated[RegistrationQueryService, Depends(get_query_service)]
StaffService = Annotated[StaffAssignmentService, Depends(get_staff_service)]
RoundsService = Annotated[RoundService, Depends(get_round_service)]
