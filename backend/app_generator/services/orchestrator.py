"""
Generation orchestrator.

``AppController.start_generation`` runs one generation request end to end:

1. validate the form and resolve the selected templates
2. authenticate with GitHub when any GitHub feature is requested
3. generate the apps (cancellable between apps)
4. prepare the Cordova build layout (optional)
5. create a repository per app and push its files (optional, best effort)
6. register each repository with Codemagic, trigger a build and start
   tracking it (optional, best effort)

Events of every component are relayed to ``ui_events`` with a component
prefix, e.g. ``github:repo:push:success`` or ``builds:build:completed``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from app_generator.config import settings
from app_generator.core.events import EventBus, EventPayload
from app_generator.core.tracing import TracingContext
from app_generator.entities.build_record import BuildRecordPatch, BuildStatus
from app_generator.entities.codemagic import TriggeredBuild
from app_generator.entities.generation_run import (
    CodemagicOutcome,
    GenerationRequest,
    GenerationRunResult,
    StageSkipped,
)
from app_generator.entities.push_result import RepoPushOutcome
from app_generator.entities.template import UsageStatus
from app_generator.services.build_status_manager import BuildStatusManager
from app_generator.services.codemagic import CodemagicClient
from app_generator.services.cordova_builder import CordovaBuilder
from app_generator.services.exceptions import (
    AppGeneratorError,
    CodemagicError,
    GenerationInProgressError,
    GithubError,
    ValidationError,
)
from app_generator.services.generator import AppGenerator
from app_generator.services.github.client import GitHubClient
from app_generator.services.github.uploader import RepositoryUploader
from app_generator.services.template_manager import TemplateManager
from app_generator.services.validation import validate_generation_form
from app_generator.utils.datetime import utc_now

logger = logging.getLogger(__name__)

MIN_CODEMAGIC_TOKEN_LENGTH = 10


class AppController:
    def __init__(
        self,
        github: GitHubClient,
        uploader: RepositoryUploader,
        codemagic: CodemagicClient,
        build_status: BuildStatusManager,
        generator: AppGenerator,
        builder: CordovaBuilder,
        templates: TemplateManager,
        ui_events: Optional[EventBus] = None,
    ):
        self.github = github
        self.uploader = uploader
        self.codemagic = codemagic
        self.build_status = build_status
        self.generator = generator
        self.builder = builder
        self.templates = templates
        self.ui_events = ui_events or EventBus("ui")

        self.is_generating = False
        self._cancel_requested = False
        self.last_result: Optional[GenerationRunResult] = None

        self._relay_component_events()
        self.build_status.events.on("build:completed", self._on_build_completed)

    def _relay_component_events(self) -> None:
        relays = [
            (self.github.events, "github"),
            (self.codemagic.events, "codemagic"),
            (self.build_status.events, "builds"),
            (self.generator.events, "generator"),
            (self.builder.events, "cordova"),
            (self.templates.events, "templates"),
        ]
        # The uploader shares the GitHub client's bus
        if self.uploader.events is not self.github.events:
            relays.append((self.uploader.events, "github"))
        for bus, prefix in relays:
            bus.relay_to(self.ui_events, prefix)

    # ------------------------------------------------------------------
    # Generation run
    # ------------------------------------------------------------------

    def _should_continue(self) -> bool:
        return not self._cancel_requested

    async def start_generation(self, request: GenerationRequest) -> GenerationRunResult:
        if self.is_generating:
            raise GenerationInProgressError("Generation already in progress")

        if not request.template_ids:
            raise ValidationError("Please select at least one app template")
        if len(request.template_ids) > settings.MAX_APPS_PER_SESSION:
            raise ValidationError(f"At most {settings.MAX_APPS_PER_SESSION} apps can be generated per session")
        validate_generation_form(request)

        templates = self.templates.resolve_templates(request.template_ids)
        if not templates:
            raise ValidationError("No valid templates found for generation")

        self.is_generating = True
        self._cancel_requested = False
        run_id = TracingContext.generate_correlation_id()
        TracingContext.set(correlation_id=run_id, run_id=run_id)
        self.ui_events.emit("run:start", {"runId": run_id, "totalApps": len(templates)})
        logger.info(f"Starting generation run {run_id} for {len(templates)} template(s)")

        try:
            if request.needs_github:
                await self.authenticate_github(request.github_username, request.github_token)

            generation_settings = request.generation_settings()
            generation = await self.generator.generate_apps(templates, generation_settings, self._should_continue)
            result = GenerationRunResult(run_id=run_id, generation=generation)

            apps = generation.results
            if request.enable_build_preparation and not self._cancel_requested:
                result.build_preparation = await self.builder.prepare_cordova_projects(apps, generation_settings)

            if request.create_github_repos or request.push_to_github:
                result.github_results = await self.uploader.create_and_push_apps(apps, self._should_continue)
            else:
                result.github_skipped = StageSkipped(reason="GitHub repository creation disabled")

            if request.enable_codemagic_integration:
                if result.github_results:
                    await self._codemagic_stage(result, request)
                else:
                    logger.warning("Codemagic integration skipped - no GitHub repositories created")
                    result.codemagic_skipped = StageSkipped(reason="No GitHub repositories available")

            result.finished_at = utc_now()
            self.last_result = result
            logger.info(
                f"Generation run {run_id} finished: {generation.successful_apps}/{generation.total_apps} apps, "
                f"{result.successful_repositories} repositories"
            )
            self.ui_events.emit("run:complete", self._summary(result))
            return result
        except AppGeneratorError as e:
            logger.error(f"Generation run {run_id} failed: {e.message}")
            self.ui_events.emit("run:error", {"runId": run_id, "error": e.message, "kind": e.kind.value})
            raise
        finally:
            self.is_generating = False
            self._cancel_requested = False
            TracingContext.clear()

    def cancel_generation(self) -> bool:
        """Ask the running generation to stop before its next app."""
        if not self.is_generating:
            return False
        self._cancel_requested = True
        logger.info("Generation cancellation requested")
        self.ui_events.emit("run:cancelled", {})
        return True

    async def authenticate_github(self, username: str, token: str) -> Dict[str, Any]:
        await self.github.authenticate(username, token)
        return await self.github.validate_token_permissions()

    async def authenticate_codemagic(self, api_token: str, team_id: Optional[str] = None) -> bool:
        api_token = (api_token or "").strip()
        if len(api_token) < MIN_CODEMAGIC_TOKEN_LENGTH:
            raise ValidationError("Valid Codemagic API token is required")
        return await self.codemagic.authenticate(api_token, (team_id or "").strip() or None)

    async def _codemagic_stage(self, result: GenerationRunResult, request: GenerationRequest) -> None:
        try:
            await self.authenticate_codemagic(request.codemagic_api_token, request.codemagic_team_id)
        except (CodemagicError, ValidationError) as e:
            logger.error(f"Codemagic integration failed: {e.message}")
            result.codemagic_skipped = StageSkipped(reason=f"Codemagic authentication failed: {e.message}")
            return

        result.codemagic_results = await self.integrate_with_codemagic(result.github_results or [], request)

    async def integrate_with_codemagic(
        self,
        github_results: List[RepoPushOutcome],
        request: GenerationRequest,
    ) -> List[CodemagicOutcome]:
        """Create a Codemagic app and trigger a tracked build for every pushed repository."""
        outcomes: List[CodemagicOutcome] = []
        for pushed in github_results:
            if not pushed.success or pushed.repository is None:
                outcomes.append(
                    CodemagicOutcome(
                        app_name=pushed.app_name,
                        template_id=pushed.template_id,
                        error="GitHub repository creation failed",
                    )
                )
                continue

            try:
                application = await self.codemagic.create_application(pushed.repository.clone_url, pushed.app_name)
                build = await self.codemagic.trigger_build(
                    application.id,
                    request.codemagic_workflow_id,
                    request.codemagic_branch,
                )
            except CodemagicError as e:
                logger.error(f"Codemagic integration failed for {pushed.app_name}: {e.message}")
                outcomes.append(
                    CodemagicOutcome(
                        app_name=pushed.app_name,
                        template_id=pushed.template_id,
                        error=e.message,
                        error_kind=e.kind.value,
                    )
                )
                continue

            self.track_build(build, pushed.app_name, pushed.template_id)
            outcomes.append(
                CodemagicOutcome(
                    app_name=pushed.app_name,
                    template_id=pushed.template_id,
                    success=True,
                    application=application,
                    build=build,
                )
            )

        succeeded = sum(1 for outcome in outcomes if outcome.success)
        logger.info(f"Codemagic integration completed for {succeeded}/{len(outcomes)} apps")
        return outcomes

    def track_build(self, build: TriggeredBuild, app_name: str, template_id: Optional[str]) -> bool:
        """Record a triggered build and start polling it. Returns False when the record could not be saved."""
        build_id = build.build_id
        saved = self.build_status.save_build(
            BuildRecordPatch(
                build_id=build_id,
                app_name=app_name,
                application_id=build.application_id,
                status=BuildStatus.QUEUED,
                workflow_id=build.workflow_id,
                branch=build.branch,
                build_url=build.build_url,
                project_url=f"{settings.CODEMAGIC_APP_URL}/{build.application_id}",
                template_id=template_id,
                timestamp=utc_now(),
                started_at=build.started_at,
            )
        )
        if saved is None:
            logger.error(f"Build {build_id} of {app_name} was triggered but could not be recorded, not tracking it")
            return False

        self.build_status.start_polling(build_id)
        if template_id:
            self.templates.record_template_usage(template_id, build_id, UsageStatus.BUILDING)
        return True

    def _on_build_completed(self, build: EventPayload) -> None:
        template_id = build.get("templateId")
        if not template_id:
            return
        status = UsageStatus.SUCCESS if build.get("status") == BuildStatus.SUCCESS.value else UsageStatus.FAILED
        self.templates.record_template_usage(template_id, build.get("buildId"), status)

    # ------------------------------------------------------------------
    # Single app retry
    # ------------------------------------------------------------------

    async def retry_app(self, template_id: str, request: GenerationRequest) -> RepoPushOutcome:
        """Regenerate one template and push it to its repository again."""
        validate_generation_form(request.model_copy(update={"create_github_repos": True}))
        template = self.templates.require_template(template_id)
        if not self.github.is_authenticated:
            await self.authenticate_github(request.github_username, request.github_token)

        generation_settings = request.generation_settings()
        app = self.generator.generate_single_app(template, generation_settings)
        if request.enable_build_preparation:
            app.build_ready = self.builder.prepare_single_project(app, generation_settings)

        self.ui_events.emit("retry:start", {"templateId": template_id, "appName": app.app_name})
        try:
            repository = await self.github.create_repository(app.config)
            push_result = await self.uploader.push_code(repository, app)
        except GithubError as e:
            self.ui_events.emit("retry:error", {"templateId": template_id, "error": e.message})
            raise

        outcome = RepoPushOutcome(
            app_name=app.app_name,
            template_id=template_id,
            repository=repository,
            push_result=push_result,
            success=True,
        )
        self.ui_events.emit("retry:success", outcome.to_document())
        return outcome

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def _summary(self, result: GenerationRunResult) -> Dict[str, Any]:
        generation = result.generation
        return {
            "runId": result.run_id,
            "totalGenerated": generation.total_apps,
            "successful": generation.successful_apps,
            "failed": generation.failed_apps,
            "cancelled": generation.cancelled,
            "githubRepos": result.successful_repositories,
            "codemagicBuilds": sum(1 for outcome in result.codemagic_results or [] if outcome.success),
        }

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "templates": self.templates.get_template_statistics(),
            "generation": self._summary(self.last_result) if self.last_result else None,
            "builds": self.build_status.get_build_stats(),
            "isGenerating": self.is_generating,
            "activePolling": self.build_status.active_polling,
        }
