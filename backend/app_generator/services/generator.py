"""
App generator - renders the Cordova skeleton of every selected template.

One ``AppConfig`` is derived per template from the shared generation settings
(``packageName = <prefix>.<template name>``). A template that fails to render
is reported as a failed ``GeneratedApp``; the batch keeps going.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from app_generator.core.events import EventBus
from app_generator.core.tracing import TracingContext
from app_generator.entities.generated_app import AppConfig, FileContent, GeneratedApp, GenerationSettings
from app_generator.entities.generation_run import GenerationBatchResult
from app_generator.entities.template import AppTemplate
from app_generator.services.exceptions import GenerationInProgressError
from app_generator.templates import cordova_files

logger = logging.getLogger(__name__)


class AppGenerator:
    def __init__(self, events: Optional[EventBus] = None):
        self.events = events or EventBus("generator")
        self.is_generating = False

    @staticmethod
    def create_app_config(template: AppTemplate, settings: GenerationSettings) -> AppConfig:
        return AppConfig(
            **settings.model_dump(),
            app_name=template.name,
            display_name=template.display_name,
            description=template.description,
            package_name=f"{settings.package_prefix}.{template.name}",
            version="1.0.0",
            plugins=list(template.plugins),
            features=list(template.features),
            icon=template.icon,
            color=template.color,
            category=template.category,
            template_id=template.id,
        )

    def render_files(self, config: AppConfig) -> Dict[str, FileContent]:
        steps = [
            (
                "Creating project structure",
                {
                    "package.json": cordova_files.package_json(config),
                    ".gitignore": cordova_files.GITIGNORE,
                    "hooks/README.md": "# Cordova Hooks\n\nPlace hook scripts for this project here.\n",
                    "www/.gitkeep": "",
                    "platforms/.gitkeep": "",
                    "plugins/.gitkeep": "",
                },
            ),
            ("Generating configuration files", {"config.xml": cordova_files.config_xml(config)}),
            ("Creating HTML interface", {"www/index.html": cordova_files.index_html(config)}),
            ("Generating CSS styles", {"www/css/index.css": cordova_files.index_css(config)}),
            ("Creating JavaScript logic", {"www/js/index.js": cordova_files.index_js(config)}),
            (
                "Creating documentation",
                {"README.md": cordova_files.readme(config), "LICENSE": cordova_files.license_text(config)},
            ),
        ]
        files: Dict[str, FileContent] = {}
        for step_name, step_files in steps:
            self.events.emit("generation:step", {"appName": config.app_name, "stepName": step_name})
            files.update(step_files)
        return files

    def generate_single_app(self, template: AppTemplate, settings: GenerationSettings) -> GeneratedApp:
        config = self.create_app_config(template, settings)
        TracingContext.set(app_name=config.app_name)
        self.events.emit("generation:app-start", {"templateId": template.id, "appName": config.app_name})

        files = self.render_files(config)
        return GeneratedApp(
            template=template,
            config=config,
            files=files,
            plugins=cordova_files.plugin_specs(config),
            success=True,
            package_name=config.package_name,
        )

    async def generate_apps(
        self,
        templates: List[AppTemplate],
        settings: GenerationSettings,
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> GenerationBatchResult:
        """Generate every template in order; stops early when ``should_continue`` turns false."""
        if self.is_generating:
            raise GenerationInProgressError("Generation already in progress")

        self.is_generating = True
        started = time.monotonic()
        total = len(templates)
        results: List[GeneratedApp] = []
        cancelled = False
        try:
            self.events.emit("generation:start", {"totalApps": total})
            for index, template in enumerate(templates, start=1):
                if should_continue is not None and not should_continue():
                    logger.info(f"Generation cancelled after {len(results)}/{total} apps")
                    cancelled = True
                    break

                self.events.emit(
                    "generation:progress",
                    {
                        "progress": round((index - 1) / total * 100),
                        "currentApp": template.name,
                        "appIndex": index,
                        "totalApps": total,
                    },
                )
                try:
                    app = self.generate_single_app(template, settings)
                except Exception as e:
                    logger.exception(f"Failed to generate {template.name}")
                    results.append(
                        GeneratedApp(template=template, success=False, error=f"Failed to generate {template.name}: {e}")
                    )
                    self.events.emit(
                        "generation:app-error",
                        {"templateId": template.id, "error": str(e), "appIndex": index, "totalApps": total},
                    )
                else:
                    results.append(app)
                    self.events.emit(
                        "generation:app-complete",
                        {
                            "templateId": template.id,
                            "appName": app.app_name,
                            "filesCount": len(app.files),
                            "appIndex": index,
                            "totalApps": total,
                        },
                    )
                # Let cancellation requests in between apps
                await asyncio.sleep(0)

            batch = GenerationBatchResult(
                total_apps=total,
                successful_apps=sum(1 for app in results if app.success),
                failed_apps=sum(1 for app in results if not app.success),
                results=results,
                cancelled=cancelled,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            logger.info(f"Generated {batch.successful_apps}/{total} apps ({batch.failed_apps} failed)")
            self.events.emit(
                "generation:complete",
                {
                    "totalApps": total,
                    "successfulApps": batch.successful_apps,
                    "failedApps": batch.failed_apps,
                    "cancelled": cancelled,
                    "durationMs": batch.duration_ms,
                },
            )
            return batch
        finally:
            self.is_generating = False
