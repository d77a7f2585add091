"""
Amazon Appstore REST v1 client.

OAuth2 client-credentials login; the bearer token is renewed before any
authorized call once it is within ``AMAZON_TOKEN_REFRESH_MARGIN_SECONDS`` of
expiry (refresh-token grant, or a new client-credentials grant when no
refresh token was issued).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import httpx

from app_generator.config import settings
from app_generator.core.events import EventBus
from app_generator.entities.appstore import (
    ApkUploadResult,
    AppstoreApp,
    AppstoreAppStatus,
    AppstoreListing,
    SubmissionResult,
)
from app_generator.entities.generated_app import AppConfig
from app_generator.services.exceptions import AppstoreError, ErrorKind
from app_generator.services.http import ApiClient
from app_generator.utils.datetime import utc_now

logger = logging.getLogger(__name__)

APK_CONTENT_TYPE = "application/vnd.android.package-archive"
TOKEN_SCOPE = "appstore:app_management"
DEFAULT_RELEASE_NOTES = "Automated upload via Cordova App Generator"


class AmazonAppstoreClient(ApiClient):
    error_cls = AppstoreError
    event_prefix = "appstore"

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
        events: Optional[EventBus] = None,
    ):
        super().__init__(base_url or settings.AMAZON_APPSTORE_API_URL, transport, timeout, events)
        self.client_id: Optional[str] = None
        self.client_secret: Optional[str] = None
        self.developer_id: Optional[str] = None
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.token_expiry: Optional[datetime] = None

    def _bearer(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    async def _request_token(self, data: Dict[str, str], auth: Optional[httpx.Auth] = None) -> None:
        extra: Dict[str, Any] = {"auth": auth} if auth is not None else {}
        response = await self._send("POST", "/auth/token", data=data, **extra)
        if not response.is_success:
            try:
                body = response.json()
                detail = body.get("error_description") or body.get("error") or ""
            except ValueError:
                detail = response.reason_phrase
            raise AppstoreError(
                f"Authentication failed: {detail}",
                ErrorKind.AUTHENTICATION if response.status_code in (400, 401) else None,
                status_code=response.status_code,
            )

        token_data = response.json()
        self.access_token = token_data["access_token"]
        self.refresh_token = token_data.get("refresh_token") or self.refresh_token
        self.token_expiry = utc_now() + timedelta(seconds=int(token_data.get("expires_in", 3600)))

    async def _client_credentials_grant(self) -> None:
        await self._request_token(
            {"grant_type": "client_credentials", "scope": TOKEN_SCOPE},
            auth=httpx.BasicAuth(self.client_id or "", self.client_secret or ""),
        )

    async def authenticate(self, client_id: str, client_secret: str, developer_id: str) -> Dict[str, Any]:
        self.events.emit("auth:start", {"clientId": client_id, "developerId": developer_id})
        self.client_id = client_id
        self.client_secret = client_secret
        self.developer_id = developer_id
        try:
            await self._client_credentials_grant()
        except AppstoreError as e:
            self.is_authenticated = False
            self.events.emit("auth:error", {"error": e.message, "kind": e.kind.value})
            raise

        self.is_authenticated = True
        logger.info(f"Authenticated with Amazon Appstore as developer {developer_id}")
        self.events.emit("auth:success", {"developerId": developer_id})
        return {"success": True, "developerId": developer_id}

    async def refresh_access_token(self) -> bool:
        if not self.client_id or not self.client_secret:
            raise AppstoreError("Not authenticated with Amazon Appstore", ErrorKind.AUTHENTICATION)

        try:
            if self.refresh_token:
                await self._request_token(
                    {
                        "grant_type": "refresh_token",
                        "refresh_token": self.refresh_token,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                    }
                )
            else:
                await self._client_credentials_grant()
        except AppstoreError:
            self.is_authenticated = False
            raise

        logger.debug("Refreshed Amazon Appstore access token")
        return True

    def token_expires_soon(self) -> bool:
        if not self.access_token or self.token_expiry is None:
            return True
        margin = timedelta(seconds=settings.AMAZON_TOKEN_REFRESH_MARGIN_SECONDS)
        return utc_now() >= self.token_expiry - margin

    async def ensure_valid_token(self) -> None:
        if self.token_expires_soon():
            await self.refresh_access_token()

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    async def create_app(self, app_config: AppConfig, listing: Optional[AppstoreListing] = None) -> AppstoreApp:
        await self.ensure_valid_token()
        listing = listing or AppstoreListing(
            title=app_config.display_name,
            package_name=app_config.package_name,
            category=app_config.category.upper() if app_config.category else "ENTERTAINMENT",
            description=app_config.description,
            short_description=app_config.description[:80],
            developer_name=app_config.author_name,
            support_email=app_config.author_email,
        )
        self.events.emit("app:create:start", {"appName": app_config.app_name})
        try:
            response = await self._send(
                "POST",
                "/applications",
                headers=self._bearer(),
                json=listing.model_dump(mode="json", by_alias=True, exclude_none=True),
            )
            self._raise_for_status(response, "App creation failed")
            data = response.json()
        except AppstoreError as e:
            self.events.emit("app:create:error", {"error": e.message, "appName": app_config.app_name})
            raise

        app = AppstoreApp(
            app_id=data["id"],
            app_name=app_config.app_name,
            package_name=app_config.package_name,
            status=data.get("status"),
        )
        self.events.emit("app:create:success", {"appId": app.app_id, "appName": app.app_name})
        return app

    async def upload_apk(self, app_id: str, apk: bytes, file_name: str) -> ApkUploadResult:
        """Request an upload URL, PUT the binary, then commit the edit."""
        await self.ensure_valid_token()
        self.events.emit("apk:upload:start", {"appId": app_id, "fileName": file_name})
        try:
            response = await self._send(
                "POST",
                f"/applications/{app_id}/edits",
                headers=self._bearer(),
                json={"fileName": file_name, "fileSize": len(apk), "contentType": APK_CONTENT_TYPE},
            )
            self._raise_for_status(response, "Upload URL request failed")
            upload = response.json()
            edit_id = upload["editId"]
            upload_url = upload["uploadUrl"]

            response = await self._send(
                "PUT",
                upload_url,
                headers={"Content-Type": APK_CONTENT_TYPE},
                content=apk,
            )
            self._raise_for_status(response, "APK upload failed")

            response = await self._send(
                "POST",
                f"/applications/{app_id}/edits/{edit_id}/commit",
                headers=self._bearer(),
                json={"releaseNotes": DEFAULT_RELEASE_NOTES},
            )
            self._raise_for_status(response, "Edit commit failed")
            commit = response.json()
        except AppstoreError as e:
            self.events.emit("apk:upload:error", {"error": e.message, "appId": app_id, "fileName": file_name})
            raise

        result = ApkUploadResult(
            app_id=app_id,
            edit_id=edit_id,
            file_name=file_name,
            upload_url=upload_url,
            status=commit.get("status"),
        )
        logger.info(f"Uploaded {file_name} to Amazon Appstore app {app_id} (edit {edit_id})")
        self.events.emit(
            "apk:upload:success",
            {"appId": app_id, "editId": edit_id, "fileName": file_name, "status": result.status},
        )
        return result

    async def get_app_status(self, app_id: str) -> AppstoreAppStatus:
        await self.ensure_valid_token()
        try:
            response = await self._send("GET", f"/applications/{app_id}", headers=self._bearer())
            self._raise_for_status(response, "Failed to get app status")
            data = response.json()
        except AppstoreError as e:
            self.events.emit("status:error", {"error": e.message, "appId": app_id})
            raise

        return AppstoreAppStatus(
            app_id=app_id,
            status=data.get("status"),
            title=data.get("title"),
            package_name=data.get("packageName"),
            last_updated=data.get("lastUpdated"),
            version=data.get("currentVersion"),
        )

    async def submit_for_review(self, app_id: str, release_notes: str = "") -> SubmissionResult:
        await self.ensure_valid_token()
        self.events.emit("submit:start", {"appId": app_id})
        try:
            response = await self._send(
                "POST",
                f"/applications/{app_id}/submit",
                headers=self._bearer(),
                json={"releaseNotes": release_notes or "Automated submission via Cordova App Generator"},
            )
            self._raise_for_status(response, "Submission failed")
            data = response.json()
        except AppstoreError as e:
            self.events.emit("submit:error", {"error": e.message, "appId": app_id})
            raise

        result = SubmissionResult(app_id=app_id, submission_id=data.get("id"), status=data.get("status"))
        self.events.emit("submit:success", {"appId": app_id, "submissionId": result.submission_id})
        return result

    def auth_status(self) -> Dict[str, Any]:
        return {
            "authenticated": self.is_authenticated,
            "developerId": self.developer_id,
            "hasToken": bool(self.access_token),
            "tokenExpiry": self.token_expiry.isoformat() if self.token_expiry else None,
        }

    def sign_out(self) -> None:
        self.is_authenticated = False
        self.client_id = None
        self.client_secret = None
        self.developer_id = None
        self.access_token = None
        self.refresh_token = None
        self.token_expiry = None
        self.events.emit("auth:signout", {})
