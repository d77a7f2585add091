"""Configuration document DTOs"""

from typing import Any, Dict, Optional

from app_generator.entities.base import CamelModel


class ConfigUpdateRequest(CamelModel):
    """Dotted paths to new values, e.g. ``{"settings.packagePrefix": "com.acme"}``."""

    changes: Dict[str, Any]


class ConfigImportRequest(CamelModel):
    config: Dict[str, Any]
    file_path: Optional[str] = None


class ConfigSaveRequest(CamelModel):
    file_path: Optional[str] = None
    include_sensitive: bool = True
