"""Entity models - the documents kept in the store and exchanged with the UI"""

from .appstore import ApkUploadResult, AppstoreApp, AppstoreAppStatus, AppstoreListing, SubmissionResult
from .base import CamelModel

# Build tracking
from .build_record import TERMINAL_STATUSES, BuildArtifact, BuildRecord, BuildRecordPatch, BuildStatus
from .codemagic import CodemagicApplication, RateLimitStatus, RemoteBuildStatus, TriggeredBuild

# Generation
from .generated_app import AppConfig, BuildReadyProject, GeneratedApp, GenerationSettings
from .generation_run import (
    BuildPreparationResult,
    CodemagicOutcome,
    GenerationBatchResult,
    GenerationRequest,
    GenerationRunResult,
    StageSkipped,
)
from .push_result import CommitInfo, FailedFile, PushResult, RepoPushOutcome
from .repository import PagesStatus, Repository
from .template import TEMPLATE_CATEGORIES, AppTemplate, TemplateUsage, UsageStatus

__all__ = [
    "ApkUploadResult",
    "AppConfig",
    "AppTemplate",
    "AppstoreApp",
    "AppstoreAppStatus",
    "AppstoreListing",
    "BuildArtifact",
    "BuildPreparationResult",
    "BuildReadyProject",
    "BuildRecord",
    "BuildRecordPatch",
    "BuildStatus",
    "CamelModel",
    "CodemagicApplication",
    "CodemagicOutcome",
    "CommitInfo",
    "FailedFile",
    "GeneratedApp",
    "GenerationBatchResult",
    "GenerationRequest",
    "GenerationRunResult",
    "GenerationSettings",
    "PagesStatus",
    "PushResult",
    "RateLimitStatus",
    "RemoteBuildStatus",
    "RepoPushOutcome",
    "Repository",
    "StageSkipped",
    "SubmissionResult",
    "TEMPLATE_CATEGORIES",
    "TERMINAL_STATUSES",
    "TemplateUsage",
    "TriggeredBuild",
    "UsageStatus",
]
