"""In-memory structures describing the files of one generated app."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import Field

from app_generator.utils.datetime import utc_now

from .base import CamelModel
from .template import AppTemplate

FileContent = Union[str, bytes]


class GenerationSettings(CamelModel):
    """Global settings shared by every app of a run (the generation form)."""

    package_prefix: str
    author_name: str
    author_email: str
    github_username: str = ""
    android_min_sdk: int = 24
    codemagic_config: str = ""


class AppConfig(GenerationSettings):
    """Settings of one app: global settings plus template-derived fields."""

    app_name: str
    display_name: str
    description: str = ""
    package_name: str
    version: str = "1.0.0"
    plugins: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    icon: str = "📱"
    color: str = "#4A90E2"
    category: str = "utilities"
    template_id: Optional[str] = None


class BuildReadyProject(CamelModel):
    """Cordova build scaffolding produced for a generated app."""

    app_name: str
    package_name: str
    files: Dict[str, FileContent] = Field(default_factory=dict)
    build_scripts: Dict[str, str] = Field(default_factory=dict)
    directories: List[str] = Field(default_factory=list)
    success: bool = True
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)


class GeneratedApp(CamelModel):
    template: AppTemplate
    config: Optional[AppConfig] = None
    files: Dict[str, FileContent] = Field(default_factory=dict)
    plugins: List[Dict[str, Any]] = Field(default_factory=list)
    success: bool = True
    error: Optional[str] = None
    package_name: Optional[str] = None
    repository_url: Optional[str] = None
    build_ready: Optional[BuildReadyProject] = None
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def app_name(self) -> str:
        return self.config.app_name if self.config else self.template.name

    def files_to_push(self) -> Dict[str, FileContent]:
        """Build-ready files when prepared, the generated files otherwise."""
        if self.build_ready is not None and self.build_ready.success:
            return self.build_ready.files
        return self.files
