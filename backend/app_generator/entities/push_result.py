"""Outcome of pushing a generated app into a GitHub repository."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app_generator.utils.datetime import utc_now

from .base import CamelModel
from .repository import Repository


class FailedFile(CamelModel):
    file_path: str
    error: str
    kind: Optional[str] = None
    attempts: int = 1


class CommitInfo(CamelModel):
    message: str
    author: str
    timestamp: datetime = Field(default_factory=utc_now)
    url: str = ""


class PushResult(CamelModel):
    repository: Repository
    commit: CommitInfo
    files_count: int
    total_files: int
    failed_files: List[FailedFile] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.files_count > 0

    @property
    def has_failures(self) -> bool:
        return len(self.failed_files) > 0

    @property
    def success_rate(self) -> int:
        if self.total_files == 0:
            return 0
        return round(self.files_count / self.total_files * 100)

    def to_document(self) -> dict:
        document = super().to_document()
        document.update(
            success=self.success,
            hasFailures=self.has_failures,
            successRate=self.success_rate,
        )
        return document


class RepoPushOutcome(CamelModel):
    """Per-app entry of a batch create-and-push."""

    app_name: str
    template_id: Optional[str] = None
    repository: Optional[Repository] = None
    push_result: Optional[PushResult] = None
    success: bool = False
    error: Optional[str] = None
    error_kind: Optional[str] = None
