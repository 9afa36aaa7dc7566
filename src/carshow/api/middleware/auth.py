"""Session credential extraction.

The API never trusts client-supplied identity: it only reads the opaque
session token from the request. Resolution to a principal happens in
``carshow.api.dependencies`` against the database on every request.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi.security import HTTPBearer

if TYPE_CHECKING:
    from fastapi import Request

logger = logging.getLogger(__name__)

# Bearer token security scheme for OpenAPI docs
bearer_scheme = HTTPBearer(auto_error=False)

SESSION_HEADER_NAME = "X-Session-Token"
DEFAULT_SESSION_COOKIE_NAME = "carshow_session"


def extract_session_token(
    request: Request, cookie_name: str = DEFAULT_SESSION_COOKIE_NAME
) -> str | None:
    """Extract the session token from a request.

    Checks in order:
    1. Cookie (cookie_name)
    2. Header (X-Session-Token)
    3. Authorization: Bearer header

    Args:
        request: The HTTP request.
        cookie_name: Name of the session cookie.

    Returns:
        The token if found, None otherwise.
    """
    token = request.cookies.get(cookie_name)
    if token:
        return token

    token = request.headers.get(SESSION_HEADER_NAME)
    if token:
        return token

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None

    return None


def get_client_ip(request: Request) -> str | None:
    """Extract the client IP address, honoring X-Forwarded-For.

    Args:
        request: The HTTP request.

    Returns:
        Client IP address or None.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # First entry is the original client
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return None
