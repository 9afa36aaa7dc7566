"""Error handling middleware for consistent JSON error responses.

All errors are converted to one JSON structure:
- error: Error type/code
- message: Human-readable description
- detail: Optional additional information
- request_id: Correlation ID for debugging

Domain errors map to HTTP statuses as follows:

    NOT_AUTHENTICATED   401 not_authenticated
    NO_EVENT_ACCESS     403 no_event_access
    FORBIDDEN           403 forbidden
    NOT_FOUND           404 not_found
    INVALID_TRANSITION  409 invalid_transition
    INVALID_UPDATE      400 invalid_update
    INVALID_ROUND_ORDER 400 invalid_round_order
    NUMBER_UNAVAILABLE  503 number_unavailable
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from carshow.api.middleware.request_id import get_request_id
from carshow.services.authz import AccessError
from carshow.services.lifecycle import LifecycleError
from carshow.services.rounds import RoundError
from carshow.services.staff import StaffMemberNotFoundError

logger = logging.getLogger(__name__)

DOMAIN_ERROR_STATUS: dict[str, int] = {
    "NOT_AUTHENTICATED": 401,
    "NO_EVENT_ACCESS": 403,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "INVALID_TRANSITION": 409,
    "INVALID_UPDATE": 400,
    "INVALID_ROUND_ORDER": 400,
    "NUMBER_UNAVAILABLE": 503,
}

# Exceptions carrying a stable ``code`` that maps to an HTTP status
DomainError = AccessError | LifecycleError | RoundError | StaffMemberNotFoundError
DOMAIN_ERRORS = (AccessError, LifecycleError, RoundError, StaffMemberNotFoundError)


def build_error_response(
    error: str,
    message: str,
    status_code: int,
    detail: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a standardized error response.

    Args:
        error: Machine-readable error code.
        message: Human-readable description.
        status_code: HTTP status code.
        detail: Optional additional details.
        headers: Optional response headers.

    Returns:
        JSONResponse with consistent error structure.
    """
    body: dict[str, Any] = {
        "error": error,
        "message": message,
    }

    request_id = get_request_id()
    if request_id:
        body["request_id"] = request_id

    if detail:
        body["detail"] = detail

    return JSONResponse(status_code=status_code, content=body, headers=headers)


def domain_error_response(exc: DomainError) -> JSONResponse:
    """Translate a domain exception into its HTTP error response."""
    status_code = DOMAIN_ERROR_STATUS.get(exc.code, 400)
    detail: dict[str, Any] = {}

    if isinstance(exc, AccessError):
        if exc.event_id is not None:
            detail["event_id"] = str(exc.event_id)
        if exc.capability is not None:
            detail["capability"] = exc.capability.value

    from_state = getattr(exc, "from_state", None)
    if from_state is not None:
        detail["current_status"] = from_state.value

    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return build_error_response(
        error=exc.code.lower(),
        message=str(exc),
        status_code=status_code,
        detail=detail or None,
        headers=headers,
    )


async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTPException in the common error format."""
    return build_error_response(
        error="http_error",
        message=str(exc.detail),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures in the common error format."""
    return build_error_response(
        error="validation_error",
        message="Request validation failed",
        status_code=422,
        detail={"errors": jsonable_errors(exc.errors())},
    )


def jsonable_errors(errors: Any) -> list[dict[str, Any]]:
    """Drop non-serializable context (e.g. exception objects) from error lists."""
    cleaned = []
    for error in errors:
        item = {key: value for key, value in dict(error).items() if key not in ("ctx", "input")}
        cleaned.append(item)
    return cleaned


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware that catches exceptions and returns consistent JSON errors.

    Handles:
    - DOMAIN_ERRORS: access, lifecycle, round and staff errors
    - ValidationError: Pydantic validation failures
    - Generic exceptions: Unexpected errors (logged, returns 500)
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        try:
            return await call_next(request)
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)
        except ValidationError as exc:
            return build_error_response(
                error="validation_error",
                message="Request validation failed",
                status_code=422,
                detail={"errors": jsonable_errors(exc.errors())},
            )
        except Exception:
            logger.exception(
                "Unexpected error processing request: %s %s",
                request.method,
                request.url.path,
            )
            return build_error_response(
                error="internal_error",
                message="An internal error occurred",
                status_code=500,
            )
