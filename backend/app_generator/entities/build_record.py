"""
BuildRecord Entity - Local record of a Codemagic build.

Created when a build is triggered, refreshed by status polling and kept in the
build history (newest first, capped, expired after a fixed number of days).
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import Field, field_validator

from app_generator.utils.datetime import ensure_aware_utc, utc_now

from .base import CamelModel


class BuildStatus(str, Enum):
    """Local build status vocabulary."""

    QUEUED = "queued"
    BUILDING = "building"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def rank(self) -> int:
        """Position in the forward-only lifecycle (queued < building < terminal)."""
        if self is BuildStatus.QUEUED:
            return 0
        if self is BuildStatus.BUILDING:
            return 1
        return 2


TERMINAL_STATUSES = frozenset(
    {
        BuildStatus.SUCCESS,
        BuildStatus.FAILED,
        BuildStatus.CANCELLED,
        BuildStatus.TIMEOUT,
    }
)


def is_terminal_status(status: Any) -> bool:
    try:
        return BuildStatus(status) in TERMINAL_STATUSES
    except ValueError:
        return False


class BuildArtifact(CamelModel):
    name: Optional[str] = None
    type: Optional[str] = None
    size: Optional[int] = None
    url: Optional[str] = None
    md5: Optional[str] = None
    package_name: Optional[str] = None
    version_name: Optional[str] = None


class BuildRecord(CamelModel):
    """A tracked CI build. Identity is ``build_id``; ``id`` mirrors it."""

    id: str = ""
    build_id: str
    app_name: str = "Unknown App"
    application_id: Optional[str] = None
    status: BuildStatus = BuildStatus.QUEUED
    workflow_id: Optional[str] = None
    branch: Optional[str] = None
    build_url: Optional[str] = None
    project_url: Optional[str] = None
    template_id: Optional[str] = None

    timestamp: datetime = Field(default_factory=utc_now)
    last_updated: datetime = Field(default_factory=utc_now)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    artifacts: List[BuildArtifact] = Field(default_factory=list)
    logs: Optional[Any] = None
    duration: Optional[str] = None

    @field_validator("timestamp", "last_updated", "started_at", "finished_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware_utc(value) if value is not None else None

    def model_post_init(self, __context: Any) -> None:
        if not self.id:
            self.id = self.build_id

    @property
    def is_completed(self) -> bool:
        return self.status.is_terminal


class BuildRecordPatch(CamelModel):
    """Partial BuildRecord used for upserts; only fields that were set are merged."""

    build_id: Optional[str] = None
    app_name: Optional[str] = None
    application_id: Optional[str] = None
    status: Optional[BuildStatus] = None
    workflow_id: Optional[str] = None
    branch: Optional[str] = None
    build_url: Optional[str] = None
    project_url: Optional[str] = None
    template_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    artifacts: Optional[List[BuildArtifact]] = None
    logs: Optional[Any] = None
    duration: Optional[str] = None
