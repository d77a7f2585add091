"""
AppTemplate Entity - Blueprint of one generated Cordova app.

Built-in templates ship with the service; custom templates are created by
users and persisted through the template manager.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from app_generator.utils.datetime import utc_now

from .base import CamelModel

TEMPLATE_CATEGORIES = [
    "productivity",
    "entertainment",
    "utilities",
    "education",
    "health",
    "finance",
    "social",
    "business",
    "games",
    "lifestyle",
]


class AppTemplate(CamelModel):
    id: str
    name: str
    display_name: str
    description: str
    icon: str = "📱"
    color: str = "#4A90E2"
    category: str = "utilities"
    plugins: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    custom_config: Dict[str, Any] = Field(default_factory=dict)
    base_template: Optional[str] = None
    version: str = "1.0.0"
    author: str = "User"
    is_built_in: bool = False
    is_custom: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class UsageStatus(str, Enum):
    USED = "used"
    BUILDING = "building"
    SUCCESS = "success"
    FAILED = "failed"


class TemplateUsage(CamelModel):
    template_id: str
    usage_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    last_used: Optional[datetime] = None
    build_ids: List[str] = Field(default_factory=list)

    @property
    def success_rate(self) -> int:
        if self.usage_count == 0:
            return 0
        return round(self.success_count / self.usage_count * 100)
