"""
Generation run shapes: the request submitted by the UI form and the
aggregated result of the generate, build-prep, GitHub and Codemagic stages.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app_generator.config import settings
from app_generator.utils.datetime import utc_now

from .base import CamelModel
from .codemagic import CodemagicApplication, TriggeredBuild
from .generated_app import BuildReadyProject, GeneratedApp, GenerationSettings
from .push_result import RepoPushOutcome


class GenerationRequest(GenerationSettings):
    """The generation form."""

    template_ids: List[str] = Field(default_factory=list)

    github_token: str = ""
    create_github_repos: bool = False
    push_to_github: bool = False

    enable_build_preparation: bool = False

    enable_codemagic_integration: bool = False
    codemagic_api_token: str = ""
    codemagic_team_id: Optional[str] = None
    codemagic_workflow_id: str = Field(default_factory=lambda: settings.CODEMAGIC_DEFAULT_WORKFLOW)
    codemagic_branch: str = Field(default_factory=lambda: settings.CODEMAGIC_DEFAULT_BRANCH)

    @property
    def needs_github(self) -> bool:
        return self.create_github_repos or self.push_to_github or self.enable_codemagic_integration

    def generation_settings(self) -> GenerationSettings:
        return GenerationSettings.model_validate(self.model_dump(include=set(GenerationSettings.model_fields)))


class GenerationBatchResult(CamelModel):
    total_apps: int
    successful_apps: int
    failed_apps: int
    results: List[GeneratedApp] = Field(default_factory=list)
    cancelled: bool = False
    duration_ms: int = 0


class BuildPreparationResult(CamelModel):
    total_apps: int
    successful_builds: int
    failed_builds: int
    results: List[BuildReadyProject] = Field(default_factory=list)


class CodemagicOutcome(CamelModel):
    app_name: str
    template_id: Optional[str] = None
    success: bool = False
    application: Optional[CodemagicApplication] = None
    build: Optional[TriggeredBuild] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)


class StageSkipped(CamelModel):
    skipped: bool = True
    reason: str


class GenerationRunResult(CamelModel):
    run_id: str
    generation: GenerationBatchResult
    build_preparation: Optional[BuildPreparationResult] = None
    github_results: Optional[List[RepoPushOutcome]] = None
    github_skipped: Optional[StageSkipped] = None
    codemagic_results: Optional[List[CodemagicOutcome]] = None
    codemagic_skipped: Optional[StageSkipped] = None
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None

    @property
    def successful_repositories(self) -> int:
        return sum(1 for outcome in self.github_results or [] if outcome.success)
