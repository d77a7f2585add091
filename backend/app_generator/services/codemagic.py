"""Codemagic REST client: applications, build triggers, status and artifacts."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from app_generator.config import settings
from app_generator.core.events import EventBus
from app_generator.entities.build_record import BuildArtifact
from app_generator.entities.codemagic import (
    CodemagicApplication,
    RateLimitStatus,
    RemoteBuildStatus,
    TriggeredBuild,
)
from app_generator.services.exceptions import CodemagicError, ErrorKind
from app_generator.services.http import ApiClient, mask_token
from app_generator.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class CodemagicClient(ApiClient):
    error_cls = CodemagicError
    event_prefix = "codemagic"

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
        events: Optional[EventBus] = None,
    ):
        super().__init__(base_url or settings.CODEMAGIC_API_URL, transport, timeout, events)
        self.api_token: Optional[str] = None
        self.team_id: Optional[str] = None
        self.rate_limit_remaining: Optional[int] = None
        self.rate_limit_reset: Optional[datetime] = None

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["Content-Type"] = "application/json"
        if self.api_token:
            headers["x-auth-token"] = self.api_token
        return headers

    def _after_response(self, response: httpx.Response) -> None:
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset = response.headers.get("X-RateLimit-Reset")
        if remaining and remaining.isdigit():
            self.rate_limit_remaining = int(remaining)
        if reset and reset.isdigit():
            self.rate_limit_reset = datetime.fromtimestamp(int(reset), tz=timezone.utc)

    def build_url(self, application_id: str, build_id: str) -> str:
        return f"{settings.CODEMAGIC_APP_URL}/{application_id}/build/{build_id}"

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def authenticate(self, api_token: str, team_id: Optional[str] = None) -> bool:
        """Validate ``api_token`` by listing applications."""
        self.events.emit("auth:start", {"apiToken": mask_token(api_token)})
        try:
            response = await self._send("GET", "/apps", headers={"x-auth-token": api_token})
            if response.status_code == 401:
                raise CodemagicError(
                    "Invalid API token. Please check your Codemagic API token.",
                    ErrorKind.AUTHENTICATION,
                    status_code=401,
                )
            self._raise_for_status(response, "Authentication failed")
            data = self._json(response, "Authentication failed")
        except CodemagicError as e:
            self.is_authenticated = False
            self.api_token = None
            self.team_id = None
            self.events.emit("auth:error", {"error": e.message, "kind": e.kind.value})
            raise

        self.is_authenticated = True
        self.api_token = api_token
        self.team_id = team_id
        logger.info("Authenticated with Codemagic")
        self.events.emit(
            "auth:success",
            {
                "apiToken": mask_token(api_token),
                "teamId": team_id,
                "appsCount": len(data.get("applications") or []),
            },
        )
        return True

    def sign_out(self) -> None:
        self.is_authenticated = False
        self.api_token = None
        self.team_id = None
        self.rate_limit_remaining = None
        self.rate_limit_reset = None
        self.events.emit("auth:logout", {})

    def rate_limit_status(self) -> RateLimitStatus:
        reset_in = None
        if self.rate_limit_reset is not None:
            reset_in = max(0.0, (self.rate_limit_reset - utc_now()).total_seconds())
        return RateLimitStatus(
            remaining=self.rate_limit_remaining,
            reset_time=self.rate_limit_reset,
            reset_in=reset_in,
        )

    def auth_status(self) -> Dict[str, Any]:
        return {
            "authenticated": self.is_authenticated,
            "hasToken": bool(self.api_token),
            "teamId": self.team_id,
            "rateLimit": self.rate_limit_status().to_document(),
        }

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    async def list_applications(self) -> List[Dict[str, Any]]:
        self._require_auth()
        response = await self._send("GET", "/apps")
        self._raise_for_status(response, "Failed to list applications")
        return self._json(response, "Failed to list applications").get("applications") or []

    async def find_application_by_name(self, app_name: str) -> Optional[CodemagicApplication]:
        """Existing application named ``app_name``; lookup failures count as not found."""
        try:
            applications = await self.list_applications()
        except CodemagicError as e:
            logger.warning(f"Failed to search for existing Codemagic application {app_name}: {e}")
            return None

        for app in applications:
            if app.get("appName") == app_name:
                return CodemagicApplication(
                    id=app["_id"],
                    app_name=app_name,
                    workflow_ids=app.get("workflowIds") or [],
                    branches=app.get("branches") or [],
                    existing=True,
                )
        return None

    async def create_application(self, repository_url: str, app_name: str) -> CodemagicApplication:
        """Register ``repository_url`` with Codemagic, reusing an application of the same name."""
        self._require_auth()
        self.events.emit("app:create:start", {"appName": app_name, "repositoryUrl": repository_url})
        try:
            existing = await self.find_application_by_name(app_name)
            if existing is not None:
                existing.repository_url = repository_url
                self.events.emit(
                    "app:create:success",
                    {"application": existing.to_document(), "appName": app_name, "created": False, "existing": True},
                )
                return existing

            body: Dict[str, Any] = {"repositoryUrl": repository_url}
            if self.team_id:
                body["teamId"] = self.team_id

            response = await self._send("POST", "/apps", json=body)
            if response.status_code == 422:
                self._raise_for_status(response, "Repository validation failed", ErrorKind.VALIDATION)
            self._raise_for_status(response, "Failed to create application")
            data = self._json(response, "Failed to create application", "_id")
        except CodemagicError as e:
            self.events.emit("app:create:error", {"error": e.message, "kind": e.kind.value, "appName": app_name})
            raise

        application = CodemagicApplication(
            id=data["_id"],
            app_name=data.get("appName") or app_name,
            repository_url=repository_url,
            created=True,
        )
        logger.info(f"Created Codemagic application {application.app_name} ({application.id})")
        self.events.emit(
            "app:create:success",
            {"application": application.to_document(), "appName": app_name, "created": True},
        )
        return application

    # ------------------------------------------------------------------
    # Builds
    # ------------------------------------------------------------------

    async def trigger_build(
        self,
        application_id: str,
        workflow_id: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> TriggeredBuild:
        self._require_auth()
        workflow_id = workflow_id or settings.CODEMAGIC_DEFAULT_WORKFLOW
        branch = branch or settings.CODEMAGIC_DEFAULT_BRANCH
        self.events.emit(
            "build:trigger:start",
            {"applicationId": application_id, "workflowId": workflow_id, "branch": branch},
        )
        try:
            response = await self._send(
                "POST",
                "/builds",
                json={"appId": application_id, "workflowId": workflow_id, "branch": branch},
            )
            if response.status_code == 404:
                raise CodemagicError(
                    "Application or workflow not found. Make sure the repository has a "
                    f'codemagic.yaml file with workflow "{workflow_id}".',
                    ErrorKind.NOT_FOUND,
                    status_code=404,
                )
            self._raise_for_status(response, "Failed to trigger build")
            build_id = self._json(response, "Failed to trigger build", "buildId")["buildId"]
        except CodemagicError as e:
            self.events.emit(
                "build:trigger:error",
                {"error": e.message, "kind": e.kind.value, "applicationId": application_id},
            )
            raise

        build = TriggeredBuild(
            build_id=build_id,
            application_id=application_id,
            workflow_id=workflow_id,
            branch=branch,
            build_url=self.build_url(application_id, build_id),
        )
        logger.info(f"Triggered Codemagic build {build_id} ({workflow_id}@{branch})")
        self.events.emit("build:trigger:success", {"build": build.to_document()})
        return build

    async def get_build_status(self, build_id: str) -> RemoteBuildStatus:
        self._require_auth()
        try:
            response = await self._send("GET", f"/builds/{build_id}")
            if response.status_code == 404:
                raise CodemagicError("Build not found", ErrorKind.NOT_FOUND, status_code=404)
            self._raise_for_status(response, "Failed to get build status")
            data = self._json(response, "Failed to get build status")
        except CodemagicError as e:
            self.events.emit("build:status:error", {"error": e.message, "kind": e.kind.value, "buildId": build_id})
            raise

        build = data.get("build") or {}
        application = data.get("application") or {}
        application_id = application.get("_id")
        remote_id = build.get("_id") or build_id
        return RemoteBuildStatus(
            build_id=remote_id,
            status=build.get("status"),
            started_at=build.get("startedAt"),
            finished_at=build.get("finishedAt"),
            workflow_id=build.get("workflowId"),
            application_id=application_id,
            application_name=application.get("appName"),
            build_url=self.build_url(application_id, remote_id) if application_id else None,
        )

    async def get_build_artifacts(self, build_id: str) -> List[BuildArtifact]:
        """Artifacts of a finished build; any failure yields an empty list."""
        try:
            response = await self._send("GET", "/builds", params={"buildId": build_id})
            self._raise_for_status(response, "Failed to get build artifacts")
            builds = self._json(response, "Failed to get build artifacts").get("builds") or []
        except CodemagicError as e:
            logger.warning(f"Failed to get build artifacts for {build_id}: {e}")
            return []

        if not builds:
            return []
        return [BuildArtifact.model_validate(artefact) for artefact in builds[0].get("artefacts") or []]
