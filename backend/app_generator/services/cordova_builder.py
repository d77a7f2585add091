"""
Cordova build preparation.

Turns the generated skeleton of each app into the layout the Codemagic
workflow builds: minimal ``config.xml`` and ``package.json``, web assets under
``www/``, a web manifest, ``codemagic.yaml`` and helper build scripts.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional

from app_generator.config import settings as app_settings
from app_generator.core.events import EventBus
from app_generator.entities.generated_app import (
    BuildReadyProject,
    FileContent,
    GeneratedApp,
    GenerationSettings,
)
from app_generator.entities.generation_run import BuildPreparationResult
from app_generator.services.exceptions import GenerationInProgressError, ValidationError
from app_generator.services.validation import validate_codemagic_yaml
from app_generator.templates import cordova_files

logger = logging.getLogger(__name__)

PROJECT_DIRECTORIES = ["www", "www/css", "www/js", "www/img", "platforms", "plugins", "hooks"]

# Skeleton paths relocated under www/
_WEB_ASSET_PATHS = {
    "index.html": "www/index.html",
    "css/index.css": "www/css/index.css",
    "js/index.js": "www/js/index.js",
}


def organize_web_assets(files: Dict[str, FileContent]) -> Dict[str, FileContent]:
    assets: Dict[str, FileContent] = {}
    for path, content in files.items():
        if path.startswith("www/"):
            assets[path] = content
        elif path in _WEB_ASSET_PATHS:
            assets[_WEB_ASSET_PATHS[path]] = content
    return assets


class CordovaBuilder:
    def __init__(self, events: Optional[EventBus] = None, workflow_id: Optional[str] = None):
        self.events = events or EventBus("cordova")
        self.workflow_id = workflow_id or app_settings.CODEMAGIC_DEFAULT_WORKFLOW
        self.is_building = False

    def codemagic_config(self, generation_settings: GenerationSettings) -> str:
        """The user supplied ``codemagic.yaml`` when it is non-blank and valid, the default workflow otherwise."""
        custom = (generation_settings.codemagic_config or "").strip()
        if not custom:
            return cordova_files.codemagic_yaml(self.workflow_id)

        result = validate_codemagic_yaml(custom)
        if not result.valid:
            messages = [f"{error.field}: {error.message}" for error in result.errors]
            raise ValidationError(f"Invalid codemagic.yaml: {'; '.join(messages)}", messages)
        return custom + "\n"

    def prepare_single_project(self, app: GeneratedApp, generation_settings: GenerationSettings) -> BuildReadyProject:
        config = app.config
        if config is None:
            raise ValidationError(f"App {app.template.name} has no configuration")

        self.events.emit("build:step", {"appName": config.app_name, "step": "Creating Cordova project structure"})
        files: Dict[str, FileContent] = {
            "config.xml": cordova_files.build_config_xml(config),
            "package.json": cordova_files.build_package_json(config),
            **organize_web_assets(app.files),
            ".gitignore": cordova_files.GITIGNORE,
            "README.md": cordova_files.readme(config),
            "www/manifest.json": cordova_files.manifest_json(config),
            "www/js/index.js": cordova_files.index_js(config),
            "www/js/cordova.js": "// Placeholder replaced by Cordova at build time\n",
        }

        self.events.emit("build:step", {"appName": config.app_name, "step": "Generating Codemagic configuration"})
        files["codemagic.yaml"] = self.codemagic_config(generation_settings)

        return BuildReadyProject(
            app_name=config.app_name,
            package_name=config.package_name,
            files=files,
            build_scripts=cordova_files.build_scripts(config),
            directories=list(PROJECT_DIRECTORIES),
        )

    async def prepare_cordova_projects(
        self,
        apps: List[GeneratedApp],
        generation_settings: GenerationSettings,
    ) -> BuildPreparationResult:
        """Prepare every successfully generated app; ``app.build_ready`` is set on each."""
        if self.is_building:
            raise GenerationInProgressError("Build preparation already in progress")

        self.is_building = True
        started = time.monotonic()
        total = len(apps)
        results: List[BuildReadyProject] = []
        try:
            self.events.emit("build:start", {"totalApps": total})
            for index, app in enumerate(apps, start=1):
                self.events.emit(
                    "build:progress",
                    {
                        "progress": round((index - 1) / total * 100),
                        "currentApp": app.app_name,
                        "appIndex": index,
                        "totalApps": total,
                    },
                )
                if not app.success:
                    project = BuildReadyProject(
                        app_name=app.app_name,
                        package_name=app.package_name or "",
                        success=False,
                        error=app.error or "App generation failed",
                    )
                    results.append(project)
                    continue

                try:
                    project = self.prepare_single_project(app, generation_settings)
                except Exception as e:
                    logger.error(f"Failed to prepare Cordova project for {app.app_name}: {e}")
                    project = BuildReadyProject(
                        app_name=app.app_name,
                        package_name=app.package_name or "",
                        success=False,
                        error=f"Failed to prepare Cordova project for {app.app_name}: {e}",
                    )
                    self.events.emit(
                        "build:app-error",
                        {"appName": app.app_name, "error": str(e), "appIndex": index, "totalApps": total},
                    )
                else:
                    self.events.emit(
                        "build:app-complete",
                        {
                            "appName": app.app_name,
                            "filesCount": len(project.files),
                            "appIndex": index,
                            "totalApps": total,
                        },
                    )
                app.build_ready = project
                results.append(project)

            preparation = BuildPreparationResult(
                total_apps=total,
                successful_builds=sum(1 for project in results if project.success),
                failed_builds=sum(1 for project in results if not project.success),
                results=results,
            )
            self.events.emit(
                "build:complete",
                {
                    "totalApps": total,
                    "successfulBuilds": preparation.successful_builds,
                    "failedBuilds": preparation.failed_builds,
                    "durationMs": int((time.monotonic() - started) * 1000),
                },
            )
            return preparation
        finally:
            self.is_building = False
