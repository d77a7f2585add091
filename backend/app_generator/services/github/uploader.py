"""
Repository uploader - writes a generated app into a GitHub repository.

Files go through the contents API one by one:

1. ``config.xml``, ``package.json`` and ``www/index.html`` first, then the
   remaining paths sorted.
2. Up to ``UPLOAD_MAX_ATTEMPTS`` attempts per file with exponential backoff
   (1s, 2s, ... capped at ``UPLOAD_BACKOFF_MAX_SECONDS``). Authentication,
   permission, repository and author email errors are never retried.
3. A pause after every ``UPLOAD_BATCH_SIZE`` uploads to ease rate limits.

A push with at least one uploaded file succeeds (possibly partially); a push
that uploaded nothing raises ``PushFailedError``.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from app_generator.config import settings
from app_generator.core.events import EventBus
from app_generator.core.tracing import TracingContext
from app_generator.entities.generated_app import AppConfig, FileContent, GeneratedApp
from app_generator.entities.push_result import CommitInfo, FailedFile, PushResult, RepoPushOutcome
from app_generator.entities.repository import Repository
from app_generator.services.exceptions import ErrorKind, GithubError, PushFailedError

from .client import GitHubClient

logger = logging.getLogger(__name__)

PRIORITY_FILES = ["config.xml", "package.json", "www/index.html"]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_INVALID_PATH_CHARS = re.compile(r'[<>:"|?*]')
_DUPLICATE_SLASHES = re.compile(r"/{2,}")


def sanitize_path(path: str) -> str:
    """Repository-relative path without traversal, invalid characters or extra slashes."""
    cleaned = path.replace("\\", "/").replace("..", "")
    cleaned = _INVALID_PATH_CHARS.sub("", cleaned)
    cleaned = _DUPLICATE_SLASHES.sub("/", cleaned)
    return cleaned.lstrip("/").strip()


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def encode_content(content: FileContent) -> str:
    """Base64 for the contents API. Text is UTF-8 encoded; bytes are sent as-is."""
    if isinstance(content, bytes):
        raw = content
    elif content.isascii():
        raw = content.encode("ascii")
    else:
        raw = content.encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def order_files(paths: Iterable[str]) -> List[str]:
    """Priority files first (in priority order), then the rest sorted."""
    paths = list(paths)
    present = set(paths)
    head = [path for path in PRIORITY_FILES if path in present]
    tail = sorted(path for path in present if path not in PRIORITY_FILES)
    return head + tail


class RepositoryUploader:
    def __init__(
        self,
        github: GitHubClient,
        events: Optional[EventBus] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_max: Optional[float] = None,
        batch_size: Optional[int] = None,
        batch_pause: Optional[float] = None,
    ):
        self.github = github
        self.events = events or github.events
        self._sleep = sleep
        self.max_attempts = max_attempts or settings.UPLOAD_MAX_ATTEMPTS
        self.backoff_base = backoff_base if backoff_base is not None else settings.UPLOAD_BACKOFF_BASE_SECONDS
        self.backoff_max = backoff_max if backoff_max is not None else settings.UPLOAD_BACKOFF_MAX_SECONDS
        self.batch_size = batch_size or settings.UPLOAD_BATCH_SIZE
        self.batch_pause = batch_pause if batch_pause is not None else settings.UPLOAD_BATCH_PAUSE_SECONDS

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt`` (1-based)."""
        return min(self.backoff_base * 2 ** (attempt - 1), self.backoff_max)

    async def upload_file(
        self,
        repository: Repository,
        file_path: str,
        content: FileContent,
        app_config: AppConfig,
        check_existing: bool = False,
    ) -> Dict[str, Any]:
        """Single upload attempt of one file."""
        path = sanitize_path(file_path)
        if not path:
            raise GithubError(f"Invalid file path: {file_path!r}", ErrorKind.VALIDATION)
        if not is_valid_email(app_config.author_email):
            raise GithubError(
                f"Invalid author email: {app_config.author_email!r}",
                ErrorKind.INVALID_AUTHOR_EMAIL,
            )

        sha = None
        if check_existing:
            try:
                sha = await self.github.get_file_sha(repository.full_name, path)
            except GithubError as e:
                if not e.retryable:
                    raise
                logger.debug(f"Could not read existing {path}, uploading without sha: {e}")

        return await self.github.put_file_content(
            repository.full_name,
            path,
            encode_content(content),
            message=f"{'Update' if sha else 'Add'} {path}",
            author_name=app_config.author_name,
            author_email=app_config.author_email,
            sha=sha,
        )

    async def _upload_with_retry(
        self,
        repository: Repository,
        file_path: str,
        content: FileContent,
        app_config: AppConfig,
    ) -> Tuple[int, Optional[GithubError]]:
        """Returns (attempts made, last error or None on success)."""
        if not sanitize_path(file_path):
            return 0, GithubError(f"Invalid file path: {file_path!r}", ErrorKind.VALIDATION)

        last_error: Optional[GithubError] = None
        attempt = 0
        while attempt < self.max_attempts:
            attempt += 1
            try:
                # A failed attempt may still have written the file, so look for its sha
                await self.upload_file(
                    repository,
                    file_path,
                    content,
                    app_config,
                    check_existing=repository.existing or attempt > 1,
                )
                return attempt, None
            except GithubError as e:
                last_error = e
                if not e.retryable:
                    logger.warning(f"Not retrying {file_path} ({e.kind.value}): {e.message}")
                    break
                if attempt < self.max_attempts:
                    delay = self.backoff_delay(attempt)
                    logger.info(f"Upload of {file_path} failed (attempt {attempt}), retrying in {delay}s: {e}")
                    self.events.emit(
                        "file:upload:retry",
                        {
                            "filePath": file_path,
                            "attempt": attempt,
                            "maxAttempts": self.max_attempts,
                            "delay": delay,
                            "error": e.message,
                        },
                    )
                    await self._sleep(delay)
        return attempt, last_error

    async def push_code(self, repository: Repository, app: GeneratedApp) -> PushResult:
        """Upload every file of ``app``; per-file failures are collected in the result."""
        config = app.config
        if config is None:
            raise GithubError(f"App {app.template.name} has no configuration", ErrorKind.VALIDATION)

        TracingContext.set(app_name=config.app_name)
        files = app.files_to_push()
        ordered = order_files(files)
        total = len(ordered)

        self.events.emit(
            "repo:push:start",
            {"repository": repository.to_document(), "appName": config.app_name, "totalFiles": total},
        )
        self.events.emit("step:start", {"stepName": f"Uploading {total} files to repository"})

        uploaded = 0
        failed_files: List[FailedFile] = []
        for file_path in ordered:
            attempts, error = await self._upload_with_retry(repository, file_path, files[file_path], config)
            if error is not None:
                logger.warning(f"Failed to upload {file_path} after {attempts} attempt(s): {error.message}")
                failed_files.append(
                    FailedFile(file_path=file_path, error=error.message, kind=error.kind.value, attempts=attempts)
                )
                continue

            uploaded += 1
            progress = round(uploaded / total * 100)
            self.events.emit(
                "step:progress",
                {"stepName": f"Uploaded {uploaded}/{total} files ({progress}%)", "progress": progress},
            )
            if uploaded % self.batch_size == 0 and uploaded < total:
                await self._sleep(self.batch_pause)

        if uploaded == 0:
            message = f"Failed to push code to {repository.full_name}: no file could be uploaded"
            logger.error(message)
            self.events.emit(
                "repo:push:error",
                {
                    "repository": repository.to_document(),
                    "error": message,
                    "failedFiles": [f.to_document() for f in failed_files],
                },
            )
            raise PushFailedError(message, failed_files)

        result = PushResult(
            repository=repository,
            commit=CommitInfo(
                message=self.commit_message(app, uploaded),
                author=config.author_name,
                url=f"{repository.html_url}/commits/main",
            ),
            files_count=uploaded,
            total_files=total,
            failed_files=failed_files,
        )
        app.repository_url = repository.html_url

        payload = {"pushResult": result.to_document(), "repository": repository.to_document()}
        if result.has_failures:
            logger.warning(
                f"Pushed {uploaded}/{total} files to {repository.full_name}, {len(failed_files)} failed"
            )
            self.events.emit("repo:push:partial", payload)
        else:
            logger.info(f"Pushed {uploaded} files to {repository.full_name}")
            self.events.emit("repo:push:success", payload)
        return result

    @staticmethod
    def commit_message(app: GeneratedApp, files_count: int) -> str:
        config = app.config
        build_ready = app.build_ready is not None and app.build_ready.success
        package_name = app.build_ready.package_name if build_ready else config.package_name
        lines = [
            f"Initial commit: {config.display_name}",
            "",
            config.description,
            "",
            "Generated by Cordova App Generator",
            f"- {files_count} files created",
            f"- Package: {package_name}",
            f"- Plugins: {len(config.plugins)} configured",
            f"- Category: {config.category}",
            f"- Cordova build structure: {'ready' if build_ready else 'not prepared'}",
        ]
        if build_ready:
            lines.append("- Codemagic CI/CD: configured")
        return "\n".join(lines)

    async def create_and_push_apps(
        self,
        apps: List[GeneratedApp],
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> List[RepoPushOutcome]:
        """Create a repository and push each app; one failing app does not stop the batch."""
        results: List[RepoPushOutcome] = []
        for index, app in enumerate(apps, start=1):
            if should_continue is not None and not should_continue():
                logger.info("Repository creation cancelled, skipping remaining apps")
                break

            app_name = app.app_name
            self.events.emit("batch:progress", {"current": index, "total": len(apps), "appName": app_name})

            if not app.success or app.config is None:
                results.append(
                    RepoPushOutcome(
                        app_name=app_name,
                        template_id=app.template.id,
                        error=app.error or "App generation failed",
                    )
                )
                continue

            try:
                repository = await self.github.create_repository(app.config)
                push_result = await self.push_code(repository, app)
            except GithubError as e:
                logger.error(f"Failed to create and push {app_name}: {e.message}")
                results.append(
                    RepoPushOutcome(
                        app_name=app_name,
                        template_id=app.template.id,
                        error=e.message,
                        error_kind=e.kind.value,
                    )
                )
                continue

            results.append(
                RepoPushOutcome(
                    app_name=app_name,
                    template_id=app.template.id,
                    repository=repository,
                    push_result=push_result,
                    success=True,
                )
            )
        return results
