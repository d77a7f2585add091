"""GitHub REST v3 client: authentication, repositories, contents and Pages."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
from urllib.parse import quote

import httpx

from app_generator.config import settings
from app_generator.core.events import EventBus
from app_generator.entities.generated_app import AppConfig
from app_generator.entities.repository import PagesStatus, Repository
from app_generator.services.exceptions import ErrorKind, GithubError
from app_generator.services.http import ApiClient, error_message

logger = logging.getLogger(__name__)


class GitHubClient(ApiClient):
    error_cls = GithubError
    event_prefix = "github"

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
        events: Optional[EventBus] = None,
        auto_enable_pages: Optional[bool] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        super().__init__(base_url or settings.GITHUB_API_URL, transport, timeout, events)
        self.username: Optional[str] = None
        self.token: Optional[str] = None
        self.user_data: Dict[str, Any] = {}
        self.auto_enable_pages = (
            settings.GITHUB_AUTO_ENABLE_PAGES if auto_enable_pages is None else auto_enable_pages
        )
        self._sleep = sleep
        self._background_tasks: Set[asyncio.Task] = set()

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["Accept"] = "application/vnd.github.v3+json"
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def authenticate(self, username: str, token: str) -> bool:
        """
        Validate ``token`` with ``GET /user``.

        GitHub's login for the token wins over ``username`` when they differ.
        """
        self.events.emit("auth:start", {"username": username})
        try:
            if not username or not username.strip():
                raise GithubError("Username is required", ErrorKind.VALIDATION)
            if not token or not token.strip():
                raise GithubError("GitHub personal access token is required", ErrorKind.VALIDATION)

            response = await self._send("GET", "/user", headers={"Authorization": f"token {token}"})
            if response.status_code == 401:
                raise GithubError(
                    "Invalid GitHub token. Please check your personal access token.",
                    ErrorKind.AUTHENTICATION,
                    status_code=401,
                )
            self._raise_for_status(response, "GitHub API error")
            user_data = response.json()
        except GithubError as e:
            self.is_authenticated = False
            self.username = None
            self.token = None
            self.events.emit("auth:error", {"error": e.message, "kind": e.kind.value})
            raise

        login = user_data.get("login") or username
        if login.lower() != username.strip().lower():
            logger.info(f"Using GitHub username {login} returned for the token instead of {username}")

        self.is_authenticated = True
        self.username = login
        self.token = token
        self.user_data = user_data
        logger.info(f"Authenticated with GitHub as {login}")
        self.events.emit("auth:success", {"username": login})
        return True

    async def validate_token_permissions(self) -> Dict[str, Any]:
        """Check ``X-OAuth-Scopes`` for one of the required repository scopes."""
        self._require_auth()
        response = await self._send("HEAD", "/user")
        self._raise_for_status(response, "Token validation failed")

        raw_scopes = response.headers.get("X-OAuth-Scopes", "")
        scopes = [scope.strip() for scope in raw_scopes.split(",") if scope.strip()]
        required = settings.GITHUB_REQUIRED_SCOPES
        if not any(scope in scopes for scope in required):
            raise GithubError(
                f"Token missing required scopes. Required: {' or '.join(required)}. Current: {raw_scopes}",
                ErrorKind.PERMISSION_DENIED,
            )
        return {"valid": True, "scopes": scopes, "hasRepoAccess": True}

    def sign_out(self) -> None:
        self.is_authenticated = False
        self.username = None
        self.token = None
        self.user_data = {}
        self.events.emit("auth:signout", {})

    def auth_status(self) -> Dict[str, Any]:
        return {
            "authenticated": self.is_authenticated,
            "username": self.username,
            "hasToken": bool(self.token),
        }

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    async def create_repository(self, app_config: AppConfig) -> Repository:
        """Return the user's repository named after the app, creating it when missing."""
        self._require_auth()
        name = app_config.app_name
        self.events.emit("repo:create:start", {"appName": name})
        try:
            existing = await self._send("GET", f"/repos/{self.username}/{name}")
            if existing.is_success:
                repository = Repository.from_github(existing.json(), created=False)
                logger.info(f"Repository {repository.full_name} already exists")
                self.events.emit("repo:create:success", {"repository": repository.to_document(), "appName": name})
                return repository

            response = await self._send(
                "POST",
                "/user/repos",
                json={
                    "name": name,
                    "description": app_config.description,
                    "private": False,
                    "auto_init": False,
                    "has_issues": True,
                    "has_projects": True,
                    "has_wiki": True,
                },
            )
            if response.status_code == 422:
                name_error = _field_error(response, "name")
                if name_error:
                    raise GithubError(
                        f'Repository name "{name}" {name_error}',
                        ErrorKind.VALIDATION,
                        status_code=422,
                    )
            self._raise_for_status(response, "Failed to create repository")
            repository = Repository.from_github(response.json(), created=True)
        except GithubError as e:
            self.events.emit("repo:create:error", {"error": e.message, "kind": e.kind.value, "appName": name})
            raise

        logger.info(f"Created repository {repository.full_name}")
        self.events.emit("repo:create:success", {"repository": repository.to_document(), "appName": name})

        if self.auto_enable_pages:
            self._spawn(self.auto_enable_github_pages(repository.name))
        return repository

    async def repository_exists(self, repo_name: str) -> bool:
        if not self.is_authenticated:
            return False
        try:
            response = await self._send("GET", f"/repos/{self.username}/{repo_name}")
        except GithubError:
            return False
        return response.is_success

    async def list_user_repositories(self, page: int = 1, per_page: int = 30) -> List[Dict[str, Any]]:
        self._require_auth()
        response = await self._send(
            "GET",
            "/user/repos",
            params={"page": page, "per_page": per_page, "sort": "updated", "direction": "desc"},
        )
        self._raise_for_status(response, "Failed to fetch repositories")
        return [
            {
                **Repository.from_github(repo, created=False).to_document(),
                "updatedAt": repo.get("updated_at"),
                "createdAt": repo.get("created_at"),
                "language": repo.get("language"),
                "stargazersCount": repo.get("stargazers_count"),
                "forksCount": repo.get("forks_count"),
            }
            for repo in response.json()
        ]

    async def delete_repository(self, repo_name: str) -> bool:
        self._require_auth()
        self.events.emit("repo:delete:start", {"repoName": repo_name})
        try:
            response = await self._send("DELETE", f"/repos/{self.username}/{repo_name}")
            if response.status_code == 404:
                raise GithubError(f"Repository {repo_name} not found", ErrorKind.NOT_FOUND, status_code=404)
            if response.status_code == 403:
                raise GithubError(
                    f"Insufficient permissions to delete repository {repo_name}",
                    ErrorKind.PERMISSION_DENIED,
                    status_code=403,
                )
            self._raise_for_status(response, "Failed to delete repository")
        except GithubError as e:
            self.events.emit("repo:delete:error", {"error": e.message, "kind": e.kind.value, "repoName": repo_name})
            raise

        self.events.emit("repo:delete:success", {"repoName": repo_name})
        return True

    # ------------------------------------------------------------------
    # Contents
    # ------------------------------------------------------------------

    async def get_file_sha(self, full_name: str, path: str) -> Optional[str]:
        """Blob SHA of ``path``, or None when the file does not exist."""
        response = await self._send("GET", f"/repos/{full_name}/contents/{quote(path, safe='/')}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response, f"Failed to read {path}")
        data = response.json()
        return data.get("sha") if isinstance(data, dict) else None

    async def put_file_content(
        self,
        full_name: str,
        path: str,
        encoded_content: str,
        message: str,
        author_name: str,
        author_email: str,
        sha: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create or update one file. ``sha`` is required by GitHub for updates."""
        identity = {"name": author_name, "email": author_email}
        body: Dict[str, Any] = {
            "message": message,
            "content": encoded_content,
            "committer": identity,
            "author": identity,
        }
        if sha:
            body["sha"] = sha

        response = await self._send("PUT", f"/repos/{full_name}/contents/{quote(path, safe='/')}", json=body)
        if response.is_success:
            return response.json()

        detail = error_message(response)
        kind = None
        if response.status_code == 404:
            kind = ErrorKind.INVALID_REPOSITORY
        elif response.status_code == 422 and "email" in detail.lower():
            kind = ErrorKind.INVALID_AUTHOR_EMAIL
        self._raise_for_status(response, f"Failed to upload {path}", kind)
        return {}

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def enable_pages(self, repo_name: str, branch: str = "main", path: str = "/") -> PagesStatus:
        self._require_auth()
        try:
            response = await self._send(
                "POST",
                f"/repos/{self.username}/{repo_name}/pages",
                json={"source": {"branch": branch, "path": path}},
            )
        except GithubError as e:
            return PagesStatus(success=False, error=e.message)

        if response.status_code == 201:
            data = response.json()
            return PagesStatus(success=True, url=data.get("html_url"), status=data.get("status"))
        if response.status_code == 409:
            return await self.get_pages_status(repo_name)

        message = error_message(response) or "Failed to enable GitHub Pages"
        logger.warning(f"Failed to enable GitHub Pages for {repo_name}: {message}")
        return PagesStatus(success=False, error=message)

    async def get_pages_status(self, repo_name: str) -> PagesStatus:
        try:
            response = await self._send("GET", f"/repos/{self.username}/{repo_name}/pages")
        except GithubError as e:
            return PagesStatus(success=False, error=e.message)

        if not response.is_success:
            return PagesStatus(success=False, error="GitHub Pages not enabled")
        data = response.json()
        return PagesStatus(
            success=True,
            url=data.get("html_url"),
            status=data.get("status"),
            source=data.get("source"),
        )

    async def monitor_pages(
        self,
        repo_name: str,
        max_checks: Optional[int] = None,
        interval: Optional[float] = None,
    ) -> PagesStatus:
        """Poll the Pages status until it is ``built`` or the checks run out."""
        max_checks = max_checks or settings.GITHUB_PAGES_MAX_CHECKS
        interval = interval if interval is not None else settings.GITHUB_PAGES_CHECK_INTERVAL_SECONDS

        status = PagesStatus(success=False, error="GitHub Pages not checked")
        for _ in range(max_checks):
            await self._sleep(interval)
            status = await self.get_pages_status(repo_name)
            if status.is_built:
                self.events.emit("pages:ready", {"repoName": repo_name, "status": status.to_document()})
                return status

        self.events.emit("pages:timeout", {"repoName": repo_name, "attempts": max_checks})
        return status

    async def auto_enable_github_pages(self, repo_name: str) -> PagesStatus:
        result = await self.enable_pages(repo_name)
        if result.success:
            await self.monitor_pages(repo_name)
        return result

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)


def _field_error(response: httpx.Response, field: str) -> Optional[str]:
    try:
        errors = response.json().get("errors") or []
    except (ValueError, AttributeError):
        return None
    for error in errors:
        if isinstance(error, dict) and error.get("field") == field:
            return error.get("message") or error.get("code") or "is invalid"
    return None
