"""Staff authentication router.

This module provides:
- POST /auth/login - Check credentials and open a server-side session
- POST /auth/logout - Revoke the current session
- GET /auth/me - The current principal and its event roles

The session cookie only carries an opaque token. Roles and event access
are re-read from the database on every request.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response

from carshow.api.dependencies import AccessService, AppSettings, CurrentPrincipal, DbSession
from carshow.api.middleware.auth import extract_session_token, get_client_ip
from carshow.api.schemas.auth import (
    EventRoleEntry,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    PrincipalResponse,
)
from carshow.core.config import Settings
from carshow.services.authz import EventAccessService, Principal
from carshow.services.session import DeviceInfo, SessionService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    responses={
        401: {"description": "Authentication required"},
    },
)


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: DbSession,
    settings: AppSettings,
    access: AccessService,
) -> LoginResponse:
    """Log in with email and password.

    Unknown accounts, wrong passwords and disabled accounts all get the
    same 401 not_authenticated response.
    """
    service = SessionService(db, session_duration_hours=settings.session.duration_hours)
    user = await service.authenticate(body.email, body.password)

    device = DeviceInfo(
        ip_address=get_client_ip(request),
        user_agent=(request.headers.get("User-Agent") or "")[:512] or None,
    )
    token = await service.create_session(user.admin_user_id, device_info=device)

    principal = Principal(
        admin_user_id=user.admin_user_id,
        email=user.email,
        global_role=user.global_role,
        is_active=user.is_active,
        full_name=user.full_name,
    )

    _set_session_cookie(response, token.access_token, settings)

    logger.info("Staff login: admin_user_id=%s", user.admin_user_id)

    return LoginResponse(
        access_token=token.access_token,
        expires_at=token.expires_at,
        principal=await _principal_response(principal, access),
    )


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    db: DbSession,
    settings: AppSettings,
) -> LogoutResponse:
    """Revoke the current session, if any, and clear the cookie."""
    token = extract_session_token(request, settings.session.cookie_name)

    revoked = False
    if token:
        service = SessionService(db, session_duration_hours=settings.session.duration_hours)
        revoked = await service.revoke_session(token)

    response.delete_cookie(key=settings.session.cookie_name, path="/")
    return LogoutResponse(success=True, revoked=revoked)


@router.get("/me")
async def me(principal: CurrentPrincipal, access: AccessService) -> PrincipalResponse:
    """Return the authenticated principal and its per-event roles."""
    return await _principal_response(principal, access)


async def _principal_response(
    principal: Principal, access: EventAccessService
) -> PrincipalResponse:
    event_roles = await access.event_roles(principal)
    return PrincipalResponse(
        admin_user_id=principal.admin_user_id,
        email=principal.email,
        full_name=principal.full_name,
        global_role=principal.global_role,
        full_access=access.has_full_access(principal),
        event_roles=[
            EventRoleEntry(event_id=event_id, event_role=role)
            for event_id, role in sorted(event_roles.items(), key=lambda item: str(item[0]))
        ],
    )


def _set_session_cookie(response: Response, session_token: str, settings: Settings) -> None:
    """Set the session cookie on a response.

    httponly keeps the token away from scripts; samesite=lax blocks
    cross-site form posts.
    """
    response.set_cookie(
        key=settings.session.cookie_name,
        value=session_token,
        httponly=True,
        samesite="lax",
        secure=settings.session.cookie_secure,
        max_age=settings.session.duration_hours * 3600,
        path="/",
    )
