"""Shared plumbing of the REST API clients."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type

import httpx

from app_generator.config import settings
from app_generator.core.events import EventBus
from app_generator.services.exceptions import (
    ErrorKind,
    IntegrationError,
    classify_http_status,
)

logger = logging.getLogger(__name__)


def mask_token(token: Optional[str]) -> str:
    """Show only the first 8 characters of a token."""
    if not token:
        return ""
    if len(token) <= 8:
        return "****"
    return f"{token[:8]}..."


def error_message(response: httpx.Response) -> str:
    """Best-effort ``message`` field of an error response."""
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or ""
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or response.reason_phrase or "")
    return response.reason_phrase or ""


class ApiClient:
    """
    Base class of the GitHub, Codemagic and Amazon Appstore wrappers.

    A new ``httpx.AsyncClient`` is opened per call. Tests pass ``transport``
    (usually ``httpx.MockTransport``) to intercept every request.
    """

    error_cls: Type[IntegrationError] = IntegrationError
    event_prefix = "api"

    def __init__(
        self,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
        events: Optional[EventBus] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.events = events or EventBus(self.event_prefix)
        self.is_authenticated = False

    def _headers(self) -> Dict[str, str]:
        return {"User-Agent": settings.USER_AGENT}

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _send(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Issue a request; transport failures become ``network`` errors."""
        request_headers = self._headers()
        if headers:
            request_headers.update(headers)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, self._url(path), headers=request_headers, **kwargs)
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise self.error_cls(f"Network error calling {path}: {e}", ErrorKind.NETWORK) from e

        self._after_response(response)
        return response

    def _after_response(self, response: httpx.Response) -> None:
        """Hook for header bookkeeping (rate limits)."""

    def _raise_for_status(self, response: httpx.Response, message: str, kind: Optional[ErrorKind] = None) -> None:
        if response.is_success:
            return
        detail = error_message(response)
        retry_after = response.headers.get("Retry-After")
        raise self.error_cls(
            f"{message}: {response.status_code} {detail}".strip(),
            kind or classify_http_status(response.status_code, response.headers, detail),
            status_code=response.status_code,
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
        )

    def _json(self, response: httpx.Response, message: str, *required: str) -> Dict[str, Any]:
        """Decode a JSON object body; malformed bodies raise ``server`` errors."""
        try:
            data = response.json()
        except ValueError as e:
            raise self.error_cls(
                f"{message}: invalid response body", ErrorKind.SERVER, status_code=response.status_code
            ) from e
        if not isinstance(data, dict):
            raise self.error_cls(f"{message}: unexpected response body", ErrorKind.SERVER, status_code=response.status_code)
        missing = [key for key in required if not data.get(key)]
        if missing:
            raise self.error_cls(
                f"{message}: response is missing {', '.join(missing)}",
                ErrorKind.SERVER,
                status_code=response.status_code,
            )
        return data

    def _require_auth(self) -> None:
        if not self.is_authenticated:
            raise self.error_cls(f"Not authenticated with {self.error_cls.service}", ErrorKind.AUTHENTICATION)
