"""
Build Status Tracker.

Keeps the local history of Codemagic builds and refreshes non-terminal
builds with one asyncio polling task per build id.

Events (emitted on ``self.events``):
    build:saved, build:save:error,
    build:status:checking, build:status:updated, build:status:error,
    build:completed,
    build:polling:started, build:polling:stopped, build:polling:exhausted,
    build:polling:active,
    build:history:cleaned, build:history:cleared, build:history:imported
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from app_generator.config import settings
from app_generator.core.events import EventBus
from app_generator.core.tracing import TracingContext
from app_generator.database.store import KeyValueStore
from app_generator.entities.build_record import (
    BuildRecord,
    BuildRecordPatch,
    BuildStatus,
)
from app_generator.repositories.build_history import BuildHistoryRepository
from app_generator.services.codemagic import CodemagicClient
from app_generator.services.exceptions import CodemagicError
from app_generator.utils.datetime import format_duration, to_iso, utc_now

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0"

_STATUS_MAP: Dict[str, BuildStatus] = {
    "queued": BuildStatus.QUEUED,
    "preparing": BuildStatus.BUILDING,
    "building": BuildStatus.BUILDING,
    "testing": BuildStatus.BUILDING,
    "publishing": BuildStatus.BUILDING,
    "success": BuildStatus.SUCCESS,
    "finished": BuildStatus.SUCCESS,
    "failed": BuildStatus.FAILED,
    "cancelled": BuildStatus.CANCELLED,
    "skipped": BuildStatus.CANCELLED,
    "timeout": BuildStatus.TIMEOUT,
}


def map_codemagic_status(value: Any) -> BuildStatus:
    """Codemagic status (any case) to the local status; unknown values are ``queued``."""
    if not isinstance(value, str):
        return BuildStatus.QUEUED
    return _STATUS_MAP.get(value.strip().lower(), BuildStatus.QUEUED)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class BuildStatusManager:
    def __init__(
        self,
        codemagic: CodemagicClient,
        store: KeyValueStore,
        events: Optional[EventBus] = None,
        poll_interval: Optional[float] = None,
        max_poll_attempts: Optional[int] = None,
        expiration_days: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.codemagic = codemagic
        self.history = BuildHistoryRepository(store)
        self.events = events or EventBus("builds")
        self.poll_interval = poll_interval if poll_interval is not None else settings.BUILD_POLL_INTERVAL_SECONDS
        self.max_poll_attempts = max_poll_attempts or settings.BUILD_POLL_MAX_ATTEMPTS
        self.expiration_days = expiration_days or settings.BUILD_EXPIRATION_DAYS
        self._sleep = sleep
        self._active_polling: Dict[str, asyncio.Task] = {}

        self.clean_expired_builds()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def save_build(self, info: Union[BuildRecord, BuildRecordPatch, Mapping[str, Any]]) -> Optional[BuildRecord]:
        """
        Upsert a build by ``build_id``.

        Only the fields present in ``info`` overwrite the stored record. New
        records go to the front of the history. Never raises: failures emit
        ``build:save:error`` and return None.
        """
        try:
            if isinstance(info, (BuildRecord, BuildRecordPatch)):
                changes = info.model_dump(exclude_unset=True)
            else:
                changes = BuildRecordPatch.model_validate(info).model_dump(exclude_unset=True)

            build_id = changes.get("build_id")
            if not build_id:
                raise ValueError("buildId is required")

            changes.pop("id", None)
            changes["last_updated"] = utc_now()

            existing = self.history.find_by_build_id(build_id)
            if existing is not None:
                record = _merge(existing, changes)
            else:
                record = BuildRecord(**changes)

            self.history.upsert(record)
        except (PydanticValidationError, ValueError) as e:
            logger.error(f"Failed to save build: {e}")
            self.events.emit("build:save:error", {"error": str(e), "buildInfo": _describe(info)})
            return None
        except Exception as e:
            # Storage backends raise their own errors (OSError, PyMongoError...)
            logger.exception("Failed to persist build")
            self.events.emit("build:save:error", {"error": str(e), "buildInfo": _describe(info)})
            return None

        self.events.emit("build:saved", record.to_document())
        return record

    def load_build_history(self) -> List[BuildRecord]:
        return self.history.load()

    def get_build(self, build_id: str) -> Optional[BuildRecord]:
        return self.history.find_by_build_id(build_id)

    def get_builds_by_app(self, app_name: str) -> List[BuildRecord]:
        return self.history.find_many(lambda record: record.app_name == app_name)

    def get_recent_builds(self, hours: int = 24) -> List[BuildRecord]:
        cutoff = utc_now() - timedelta(hours=hours)
        return self.history.find_many(lambda record: record.timestamp > cutoff)

    def clean_expired_builds(self) -> int:
        """Drop records older than ``expiration_days``. Returns the number removed."""
        try:
            removed, remaining = self.history.remove_older_than(self.expiration_days)
        except OSError as e:
            logger.error(f"Failed to clean expired builds: {e}")
            return 0

        if removed:
            logger.info(f"Removed {removed} expired builds, {remaining} remaining")
            self.events.emit("build:history:cleaned", {"removed": removed, "remaining": remaining})
        return removed

    def clear_build_history(self) -> bool:
        try:
            self.history.clear()
        except OSError as e:
            logger.error(f"Failed to clear build history: {e}")
            return False
        self.stop_all_polling()
        self.events.emit("build:history:cleared", {})
        return True

    def get_build_stats(self) -> Dict[str, int]:
        builds = self.load_build_history()
        stats = {
            "total": len(builds),
            "success": sum(1 for b in builds if b.status == BuildStatus.SUCCESS),
            "failed": sum(1 for b in builds if b.status == BuildStatus.FAILED),
            "building": sum(1 for b in builds if b.status == BuildStatus.BUILDING),
            "queued": sum(1 for b in builds if b.status == BuildStatus.QUEUED),
            "recent": len(self.get_recent_builds()),
        }
        stats["successRate"] = round(stats["success"] / stats["total"] * 100) if stats["total"] else 0
        return stats

    def export_build_history(self) -> str:
        export_data = {
            "exportDate": to_iso(utc_now()),
            "version": EXPORT_FORMAT_VERSION,
            "builds": [record.to_document() for record in self.load_build_history()],
        }
        return json.dumps(export_data, indent=2)

    def import_build_history(self, json_data: str) -> bool:
        """Replace the history with the ``builds`` of an export. Returns False on bad input."""
        try:
            data = json.loads(json_data)
            builds = data.get("builds") if isinstance(data, dict) else None
            if not isinstance(builds, list):
                return False
            records = [BuildRecord.model_validate(doc) for doc in builds]
            self.history.save(records)
        except (json.JSONDecodeError, PydanticValidationError, OSError) as e:
            logger.error(f"Failed to import build history: {e}")
            return False

        self.events.emit("build:history:imported", {"count": len(records)})
        return True

    @staticmethod
    def calculate_duration(started_at: Any, finished_at: Any) -> Optional[str]:
        return format_duration(started_at, finished_at)

    # ------------------------------------------------------------------
    # Status refresh
    # ------------------------------------------------------------------

    async def update_build_status(self, build_id: str, force: bool = False) -> Optional[BuildRecord]:
        """
        Refresh one build from Codemagic.

        Terminal builds are returned as-is without a remote call unless
        ``force`` is set. Without ``force`` the status never moves backwards.
        """
        if not self.codemagic.is_authenticated:
            logger.warning("Codemagic is not authenticated, skipping status update")
            return None

        build = self.get_build(build_id)
        if build is None:
            logger.warning(f"Build {build_id} not found in history")
            return None

        if build.is_completed and not force:
            return build

        TracingContext.set(build_id=build_id)
        self.events.emit("build:status:checking", {"buildId": build_id})

        try:
            remote = await self.codemagic.get_build_status(build_id)
        except CodemagicError as e:
            logger.error(f"Failed to update build status for {build_id}: {e}")
            self.events.emit(
                "build:status:error",
                {"buildId": build_id, "error": e.message, "kind": e.kind.value},
            )
            return None

        status = map_codemagic_status(remote.status)
        artifacts = None
        if status == BuildStatus.SUCCESS:
            try:
                artifacts = await self.codemagic.get_build_artifacts(build_id)
            except CodemagicError as e:
                logger.warning(f"Failed to get artifacts for {build_id}: {e}")

        # Another refresh of the same build may have finished while we awaited
        build = self.get_build(build_id) or build
        if not force and status.rank < build.status.rank:
            logger.debug(f"Ignoring backwards transition {build.status.value} -> {status.value} for {build_id}")
            status = build.status

        changes: Dict[str, Any] = {
            "build_id": build_id,
            "status": status,
            "started_at": remote.started_at,
            "finished_at": remote.finished_at,
            "duration": format_duration(remote.started_at, remote.finished_at),
        }
        if artifacts is not None and status == BuildStatus.SUCCESS:
            changes["artifacts"] = artifacts

        updated = self.save_build(BuildRecordPatch(**changes))
        if updated is None:
            updated = _merge(build, changes)

        self.events.emit("build:status:updated", updated.to_document())

        if status.is_terminal:
            self.stop_polling(build_id)
            if not build.is_completed:
                logger.info(f"Build {build_id} completed with status {status.value}")
                self.events.emit("build:completed", updated.to_document())

        return updated

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def is_polling(self, build_id: str) -> bool:
        return build_id in self._active_polling

    @property
    def active_polling(self) -> List[str]:
        return list(self._active_polling)

    def start_polling(self, build_id: str) -> bool:
        """Start the poller of ``build_id``. Returns False when it already runs."""
        if build_id in self._active_polling:
            return False

        self._active_polling[build_id] = asyncio.create_task(
            self._poll(build_id), name=f"build-poll-{build_id}"
        )
        logger.info(f"Started polling build {build_id} every {self.poll_interval}s")
        self.events.emit("build:polling:started", {"buildId": build_id})
        return True

    def stop_polling(self, build_id: str) -> bool:
        task = self._active_polling.pop(build_id, None)
        if task is None:
            return False

        if task is not _current_task():
            task.cancel()
        self.events.emit("build:polling:stopped", {"buildId": build_id})
        return True

    def stop_all_polling(self) -> None:
        for build_id in list(self._active_polling):
            self.stop_polling(build_id)

    def start_polling_active_builds(self) -> int:
        """Resume polling of every persisted non-terminal build."""
        active = [record for record in self.load_build_history() if not record.is_completed]
        for record in active:
            self.start_polling(record.build_id)

        if active:
            self.events.emit("build:polling:active", {"count": len(active)})
        return len(active)

    async def _poll(self, build_id: str) -> None:
        attempts = 0
        while build_id in self._active_polling:
            await self._sleep(self.poll_interval)
            if build_id not in self._active_polling:
                return

            attempts += 1
            try:
                await self.update_build_status(build_id)
            except Exception as e:
                logger.exception(f"Polling build {build_id} failed")
                self.events.emit("build:status:error", {"buildId": build_id, "error": str(e)})

            if build_id in self._active_polling and attempts >= self.max_poll_attempts:
                logger.warning(f"Giving up polling build {build_id} after {attempts} attempts")
                self.stop_polling(build_id)
                self.events.emit("build:polling:exhausted", {"buildId": build_id, "attempts": attempts})
                return


def _merge(record: BuildRecord, changes: Dict[str, Any]) -> BuildRecord:
    return BuildRecord.model_validate({**record.model_dump(), **changes})


def _describe(info: Any) -> Any:
    if isinstance(info, (BuildRecord, BuildRecordPatch)):
        return info.to_document()
    if isinstance(info, Mapping):
        return dict(info)
    return repr(info)
