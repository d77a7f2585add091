"""Exceptions raised by the generator services and the remote API clients.

Every error carries an ``ErrorKind`` assigned where the failure happens
(usually from the HTTP status of the remote response). Downstream code
branches on the kind, never on the message text.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Mapping, Optional


class ErrorKind(str, Enum):
    """Classification of a failure."""

    AUTHENTICATION = "authentication"
    PERMISSION_DENIED = "permission_denied"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    INVALID_REPOSITORY = "invalid_repository"
    INVALID_AUTHOR_EMAIL = "invalid_author_email"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    NETWORK = "network"
    SERVER = "server"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self not in NON_RETRYABLE_KINDS


NON_RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.AUTHENTICATION,
        ErrorKind.PERMISSION_DENIED,
        ErrorKind.INVALID_REPOSITORY,
        ErrorKind.INVALID_AUTHOR_EMAIL,
    }
)


_USER_MESSAGES = {
    ErrorKind.AUTHENTICATION: "Authentication failed. Please check your API tokens and try again.",
    ErrorKind.PERMISSION_DENIED: "Permission denied. Please check your account permissions.",
    ErrorKind.RATE_LIMIT: "Rate limit exceeded. Please wait a moment before trying again.",
    ErrorKind.VALIDATION: "Invalid data provided. Please check your input and try again.",
    ErrorKind.INVALID_REPOSITORY: "The target repository does not exist or is not accessible.",
    ErrorKind.INVALID_AUTHOR_EMAIL: "The author email is not valid. Please fix it in the settings.",
    ErrorKind.NOT_FOUND: "The requested resource was not found.",
    ErrorKind.CONFLICT: "The operation conflicts with the current state. Please retry later.",
    ErrorKind.NETWORK: "Connection issue detected. Please check your network and try again.",
    ErrorKind.SERVER: "Server error. Please try again later.",
    ErrorKind.UNKNOWN: "An error occurred. Please check the logs for details.",
}


def user_message(kind: ErrorKind) -> str:
    """Human readable guidance for an error kind."""
    return _USER_MESSAGES.get(kind, _USER_MESSAGES[ErrorKind.UNKNOWN])


def classify_http_status(
    status_code: int,
    headers: Optional[Mapping[str, str]] = None,
    message: str = "",
) -> ErrorKind:
    """Map an HTTP failure to an ErrorKind."""
    headers = headers or {}
    if status_code == 401:
        return ErrorKind.AUTHENTICATION
    if status_code == 403:
        # GitHub answers primary and secondary rate limits with 403
        if headers.get("X-RateLimit-Remaining") == "0" or "rate limit" in message.lower():
            return ErrorKind.RATE_LIMIT
        return ErrorKind.PERMISSION_DENIED
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code == 409:
        return ErrorKind.CONFLICT
    if status_code == 422:
        return ErrorKind.VALIDATION
    if status_code == 429:
        return ErrorKind.RATE_LIMIT
    if status_code >= 500:
        return ErrorKind.SERVER
    return ErrorKind.UNKNOWN


class AppGeneratorError(Exception):
    """Base exception for generator failures."""

    default_kind = ErrorKind.UNKNOWN

    def __init__(self, message: str, kind: ErrorKind | None = None):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    @property
    def user_message(self) -> str:
        return user_message(self.kind)


class ValidationError(AppGeneratorError):
    """Raised when form, template or configuration data is invalid."""

    default_kind = ErrorKind.VALIDATION

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class NotFoundError(AppGeneratorError):
    """Raised when a template, build or configuration entry does not exist."""

    default_kind = ErrorKind.NOT_FOUND


class GenerationInProgressError(AppGeneratorError):
    """Raised when a second generation run is requested while one is active."""

    default_kind = ErrorKind.CONFLICT


class IntegrationError(AppGeneratorError):
    """Base exception for remote API failures."""

    service = "remote"

    def __init__(
        self,
        message: str,
        kind: ErrorKind | None = None,
        status_code: int | None = None,
        retry_after: int | float | None = None,
    ):
        super().__init__(message, kind)
        self.status_code = status_code
        self.retry_after = retry_after


class GithubError(IntegrationError):
    """Raised for GitHub REST failures."""

    service = "github"


class PushFailedError(GithubError):
    """Raised when not a single file could be uploaded to a repository."""

    def __init__(self, message: str, failed_files: Optional[list] = None):
        super().__init__(message, ErrorKind.UNKNOWN)
        self.failed_files = failed_files or []


class CodemagicError(IntegrationError):
    """Raised for Codemagic REST failures."""

    service = "codemagic"


class AppstoreError(IntegrationError):
    """Raised for Amazon Appstore REST failures."""

    service = "amazon_appstore"
