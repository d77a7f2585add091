"""Error codes for standardized API error responses.

Maps HTTP status codes and generator error kinds to semantic error codes for
consistent client-side handling, and registers the exception handlers that
render every ``AppGeneratorError`` as ``{"error": {...}}``.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app_generator.services.exceptions import (
    AppGeneratorError,
    ErrorKind,
    IntegrationError,
    PushFailedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Client errors (4xx)
    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    UNPROCESSABLE = "UNPROCESSABLE"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    GATEWAY_ERROR = "GATEWAY_ERROR"


# HTTP status code to ErrorCode mapping
STATUS_TO_ERROR_CODE: dict[int, ErrorCode] = {
    400: ErrorCode.BAD_REQUEST,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
    429: ErrorCode.RATE_LIMITED,
    500: ErrorCode.INTERNAL_ERROR,
    502: ErrorCode.GATEWAY_ERROR,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}

# Error kind to HTTP status of the API response
KIND_TO_STATUS: dict[ErrorKind, int] = {
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.VALIDATION: 422,
    ErrorKind.INVALID_REPOSITORY: 422,
    ErrorKind.INVALID_AUTHOR_EMAIL: 422,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NETWORK: 503,
    ErrorKind.SERVER: 502,
    ErrorKind.UNKNOWN: 500,
}


def get_error_code(status_code: int) -> ErrorCode:
    """Get ErrorCode from HTTP status code."""
    return STATUS_TO_ERROR_CODE.get(status_code, ErrorCode.INTERNAL_ERROR)


def status_for_error(error: AppGeneratorError) -> int:
    if isinstance(error, PushFailedError):
        return 502
    return KIND_TO_STATUS.get(error.kind, 500)


def error_body(
    status_code: int,
    message: str,
    kind: Optional[str] = None,
    details: Optional[List[Any]] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"code": get_error_code(status_code).value, "message": message}
    if kind:
        body["kind"] = kind
    if details:
        body["details"] = details
    return {"error": body}


async def app_error_handler(request: Request, exc: AppGeneratorError) -> JSONResponse:
    status_code = status_for_error(exc)
    details: Optional[List[Any]] = None
    if isinstance(exc, ValidationError):
        details = exc.errors
    elif isinstance(exc, PushFailedError):
        details = [failed.to_document() for failed in exc.failed_files]

    if isinstance(exc, IntegrationError):
        logger.warning(f"{exc.service} error on {request.url.path}: {exc.message} ({exc.kind.value})")
    body = error_body(status_code, exc.message, exc.kind.value, details)
    body["error"]["hint"] = exc.user_message
    return JSONResponse(status_code=status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppGeneratorError, app_error_handler)
