"""carshow API middleware components.

This module provides:
- Request ID tracking
- Consistent error response formatting
- Session token extraction
"""

from carshow.api.middleware.auth import (
    SESSION_HEADER_NAME,
    bearer_scheme,
    extract_session_token,
    get_client_ip,
)
from carshow.api.middleware.errors import (
    ErrorHandlerMiddleware,
    build_error_response,
    http_exception_handler,
    validation_exception_handler,
)
from carshow.api.middleware.request_id import RequestIDMiddleware, get_request_id

__all__ = [
    "SESSION_HEADER_NAME",
    "ErrorHandlerMiddleware",
    "RequestIDMiddleware",
    "bearer_scheme",
    "build_error_response",
    "extract_session_token",
    "get_client_ip",
    "get_request_id",
    "http_exception_handler",
    "validation_exception_handler",
]
