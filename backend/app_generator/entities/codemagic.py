"""Codemagic application and build shapes."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app_generator.utils.datetime import utc_now

from .base import CamelModel


class CodemagicApplication(CamelModel):
    id: str
    app_name: str
    repository_url: Optional[str] = None
    workflow_ids: List[str] = Field(default_factory=list)
    branches: List[str] = Field(default_factory=list)
    created: bool = False
    existing: bool = False
    timestamp: datetime = Field(default_factory=utc_now)


class TriggeredBuild(CamelModel):
    build_id: str
    application_id: str
    workflow_id: str
    branch: str
    status: str = "queued"
    started_at: datetime = Field(default_factory=utc_now)
    build_url: str


class RemoteBuildStatus(CamelModel):
    """Build as reported by ``GET /builds/{id}``; ``status`` is Codemagic's vocabulary."""

    build_id: str
    status: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    workflow_id: Optional[str] = None
    application_id: Optional[str] = None
    application_name: Optional[str] = None
    build_url: Optional[str] = None


class RateLimitStatus(CamelModel):
    remaining: Optional[int] = None
    reset_time: Optional[datetime] = None
    reset_in: Optional[float] = None
