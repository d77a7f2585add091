"""
Configuration manager - the versioned JSON configuration document.

Loading always runs migrate -> merge with defaults -> validate, so callers
only ever see documents of the current version with every section present.
Dotted paths (``settings.packagePrefix``) address individual values.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from app_generator.config import settings
from app_generator.core.events import EventBus
from app_generator.database.store import KeyValueStore
from app_generator.services.exceptions import NotFoundError, ValidationError
from app_generator.utils.datetime import utc_now_iso

logger = logging.getLogger(__name__)

RECENT_FILES_KEY = "cordova-recent-files"
MAX_RECENT_FILES = 5

REQUIRED_PATHS = [
    "version",
    "metadata",
    "authentication.github",
    "authentication.codemagic",
    "settings",
    "ui",
    "templates",
]

_MISSING = object()


def compare_versions(left: str, right: str) -> int:
    """-1, 0 or 1 comparing dotted numeric versions; missing parts count as 0."""

    def parts(version: str) -> List[int]:
        result = []
        for part in str(version).split("."):
            try:
                result.append(int(part))
            except ValueError:
                result.append(0)
        return result

    left_parts, right_parts = parts(left), parts(right)
    for index in range(max(len(left_parts), len(right_parts))):
        a = left_parts[index] if index < len(left_parts) else 0
        b = right_parts[index] if index < len(right_parts) else 0
        if a != b:
            return -1 if a < b else 1
    return 0


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of ``base`` with ``override`` merged in; nested dicts merge, everything else replaces."""
    merged = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def get_nested(doc: Mapping[str, Any], path: str, default: Any = None) -> Any:
    current: Any = doc
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return default
        current = current[key]
    return current


def set_nested(doc: Dict[str, Any], path: str, value: Any) -> None:
    keys = path.split(".")
    current = doc
    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value


def default_config(version: Optional[str] = None) -> Dict[str, Any]:
    now = utc_now_iso()
    return {
        "version": version or settings.CONFIG_DOCUMENT_VERSION,
        "metadata": {
            "created": now,
            "lastModified": now,
            "appVersion": settings.APP_VERSION,
            "description": "Cordova App Generator Configuration",
        },
        "authentication": {
            "github": {"token": "", "username": "", "lastValidated": None, "isValid": False, "rateLimit": None},
            "codemagic": {"token": "", "teamId": "", "lastValidated": None, "isValid": False, "rateLimit": None},
        },
        "settings": {
            "packagePrefix": "com.yourcompany",
            "authorName": "Cordova Developer",
            "authorEmail": "dev@example.com",
            "outputDirectory": "./generated-apps",
            "androidMinSdk": 24,
            "enableBuildPreparation": True,
            "enableGitInit": True,
            "enableCodemagicIntegration": False,
            "codemagicWorkflowId": settings.CODEMAGIC_DEFAULT_WORKFLOW,
            "codemagicBranch": settings.CODEMAGIC_DEFAULT_BRANCH,
            "codemagicConfig": "",
        },
        "ui": {
            "selectedTemplates": [],
            "filterSettings": {"status": "all", "searchTerm": ""},
            "lastUsedTemplates": [],
            "preferences": {"autoSave": True, "showAdvancedOptions": False, "theme": "default"},
        },
        "templates": {"custom": [], "usage": {}, "favorites": []},
    }


def migrate_from_legacy(config: Mapping[str, Any], version: str) -> Dict[str, Any]:
    """Rebuild a flat pre-1.0.0 document into the nested layout."""
    if "authentication" in config and "settings" in config:
        return dict(config)

    defaults = default_config(version)["settings"]
    migrated = default_config(version)
    migrated["metadata"]["description"] = "Migrated from legacy configuration"
    migrated["authentication"]["github"].update(
        token=config.get("githubToken", ""),
        username=config.get("githubUsername", ""),
    )
    migrated["authentication"]["codemagic"].update(
        token=config.get("codemagicApiToken", ""),
        teamId=config.get("codemagicTeamId", ""),
    )
    for key in (
        "packagePrefix",
        "authorName",
        "authorEmail",
        "outputDirectory",
        "androidMinSdk",
        "codemagicWorkflowId",
        "codemagicBranch",
        "codemagicConfig",
    ):
        migrated["settings"][key] = config.get(key) or defaults[key]
    migrated["settings"]["enableBuildPreparation"] = config.get("enableBuildPreparation") is not False
    migrated["settings"]["enableGitInit"] = config.get("enableGitInit") is not False
    migrated["settings"]["enableCodemagicIntegration"] = bool(config.get("enableCodemagicIntegration", False))
    return migrated


CONFIGURATION_PRESETS: List[Dict[str, Any]] = [
    {
        "id": "personal",
        "name": "Personal Development",
        "description": "Basic setup for personal projects",
        "settings": {"packagePrefix": "com.personal", "authorName": "Personal Developer", "enableCodemagicIntegration": False},
    },
    {
        "id": "team",
        "name": "Team Project",
        "description": "Configuration for team collaboration",
        "settings": {"packagePrefix": "com.team", "enableCodemagicIntegration": True, "enableBuildPreparation": True},
    },
    {
        "id": "production",
        "name": "Production",
        "description": "Production-ready configuration",
        "settings": {
            "packagePrefix": "com.production",
            "enableCodemagicIntegration": True,
            "enableBuildPreparation": True,
            "enableGitInit": True,
        },
    },
]


class ConfigManager:
    def __init__(
        self,
        store: KeyValueStore,
        events: Optional[EventBus] = None,
        file_path: Optional[str] = None,
        backup_enabled: bool = True,
    ):
        self.store = store
        self.events = events or EventBus("config")
        self.version = settings.CONFIG_DOCUMENT_VERSION
        self.default_path = file_path or settings.CONFIG_FILE_PATH
        self.backup_enabled = backup_enabled
        self.current: Optional[Dict[str, Any]] = None
        self.current_path: Optional[str] = None
        self.is_dirty = False

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_default_configuration(self) -> Dict[str, Any]:
        """Load the configured file, or start from defaults when it is missing or invalid."""
        path = Path(self.default_path)
        if path.exists():
            try:
                return self.load_from_file(path)
            except ValidationError as e:
                logger.warning(f"Could not load configuration from {path}: {e.message}")
        return self.create_default_configuration()

    def create_default_configuration(self) -> Dict[str, Any]:
        self.current = default_config(self.version)
        self.current_path = None
        self.is_dirty = False
        self.events.emit("config:loaded", {"config": self.get_config(), "isNew": True})
        return self.get_config()

    def load_from_file(self, file_path: str | Path) -> Dict[str, Any]:
        path = Path(file_path)
        try:
            with path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            raise ValidationError(f"Failed to load configuration from {path}: {e}") from e
        return self.load_from_data(data, str(path))

    def load_from_data(self, data: Any, file_path: Optional[str] = None) -> Dict[str, Any]:
        self.events.emit("config:loading", {"filePath": file_path})
        try:
            config = self.validate_and_migrate(data)
        except ValidationError as e:
            self.events.emit("config:error", {"error": e.message, "type": "load"})
            raise

        config["metadata"]["lastModified"] = utc_now_iso()
        self.current = config
        self.current_path = file_path
        self.is_dirty = False
        if file_path:
            self.add_to_recent_files(file_path)

        logger.info(f"Configuration loaded{f' from {file_path}' if file_path else ''}")
        self.events.emit("config:loaded", {"config": self.get_config(), "filePath": file_path, "isNew": False})
        return self.get_config()

    def validate_and_migrate(self, data: Any) -> Dict[str, Any]:
        if not isinstance(data, Mapping):
            raise ValidationError("Configuration must be a valid JSON object")

        from_version = str(data.get("version") or "0.0.0")
        config = copy.deepcopy(dict(data))
        if compare_versions(from_version, self.version) < 0:
            logger.info(f"Migrating configuration from v{from_version} to v{self.version}")
            config = self.migrate(config, from_version)

        merged = deep_merge(default_config(self.version), config)
        self.validate_required_fields(merged)
        return merged

    def migrate(self, config: Dict[str, Any], from_version: str) -> Dict[str, Any]:
        if compare_versions(from_version, "1.0.0") < 0:
            config = migrate_from_legacy(config, self.version)

        config["version"] = self.version
        metadata = config.setdefault("metadata", {})
        metadata["migrated"] = {"from": from_version, "to": self.version, "timestamp": utc_now_iso()}
        return config

    @staticmethod
    def validate_required_fields(config: Mapping[str, Any]) -> None:
        missing = [path for path in REQUIRED_PATHS if not get_nested(config, path)]
        if missing:
            errors = [f"Missing required configuration field: {path}" for path in missing]
            raise ValidationError(errors[0], errors)

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def get_config(self) -> Dict[str, Any]:
        if self.current is None:
            self.current = default_config(self.version)
        return copy.deepcopy(self.current)

    def get_value(self, path: str, default: Any = None) -> Any:
        return copy.deepcopy(get_nested(self.get_config(), path, default))

    def update_config(self, path: str, value: Any) -> None:
        if self.current is None:
            self.create_default_configuration()

        set_nested(self.current, path, copy.deepcopy(value))
        self.current["metadata"]["lastModified"] = utc_now_iso()
        self.is_dirty = True
        self.events.emit("config:changed", {"path": path, "value": value})

    def update_many(self, changes: Mapping[str, Any]) -> Dict[str, Any]:
        for path, value in changes.items():
            self.update_config(path, value)
        return self.get_config()

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def prepare_for_saving(self, include_sensitive: bool = True) -> Dict[str, Any]:
        config = self.get_config()
        config["metadata"]["lastModified"] = utc_now_iso()
        config["metadata"]["savedBy"] = settings.APP_NAME
        if not include_sensitive:
            config["authentication"]["github"]["token"] = ""
            config["authentication"]["codemagic"]["token"] = ""
        return config

    def save_configuration(self, file_path: Optional[str] = None, include_sensitive: bool = True) -> Dict[str, Any]:
        target = Path(file_path or self.current_path or self.default_path)
        config = self.prepare_for_saving(include_sensitive)

        if self.backup_enabled and target.exists():
            self.create_backup(target)

        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(config, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_name, target)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            self.events.emit("config:error", {"error": str(e), "type": "save"})
            raise

        self.current_path = str(target)
        self.is_dirty = False
        self.add_to_recent_files(str(target))
        self.events.emit("config:saved", {"filePath": str(target), "includeSensitive": include_sensitive})
        return config

    def export_configuration(self, include_sensitive: bool = False) -> str:
        return json.dumps(self.prepare_for_saving(include_sensitive), indent=2, ensure_ascii=False)

    def create_backup(self, path: Optional[Path] = None) -> Optional[Path]:
        source = Path(path or self.current_path or self.default_path)
        if not source.exists():
            return None

        timestamp = utc_now_iso().replace(":", "-").replace(".", "-")
        backup = source.with_name(f"{source.stem}-backup-{timestamp}{source.suffix}")
        try:
            shutil.copy2(source, backup)
        except OSError as e:
            logger.warning(f"Failed to create configuration backup of {source}: {e}")
            return None
        logger.info(f"Configuration backup created: {backup}")
        return backup

    # ------------------------------------------------------------------
    # Recent files and presets
    # ------------------------------------------------------------------

    def get_recent_files(self) -> List[Dict[str, str]]:
        recent = self.store.get(RECENT_FILES_KEY, [])
        return recent if isinstance(recent, list) else []

    def add_to_recent_files(self, file_path: str) -> List[Dict[str, str]]:
        recent = [entry for entry in self.get_recent_files() if entry.get("path") != file_path]
        recent.insert(0, {"path": file_path, "name": Path(file_path).name, "timestamp": utc_now_iso()})
        recent = recent[:MAX_RECENT_FILES]
        self.store.set(RECENT_FILES_KEY, recent)
        self.events.emit("recent-files:updated", {"files": recent})
        return recent

    @staticmethod
    def get_configuration_presets() -> List[Dict[str, Any]]:
        return copy.deepcopy(CONFIGURATION_PRESETS)

    def load_preset(self, preset_id: str) -> Dict[str, Any]:
        preset = next((preset for preset in CONFIGURATION_PRESETS if preset["id"] == preset_id), None)
        if preset is None:
            raise NotFoundError(f"Configuration preset not found: {preset_id}")

        config = self.load_from_data(deep_merge(default_config(self.version), {"settings": preset["settings"]}))
        self.is_dirty = True
        return config
