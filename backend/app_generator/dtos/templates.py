"""Template DTOs"""

from typing import List, Optional

from app_generator.entities.base import CamelModel
from app_generator.entities.template import AppTemplate, UsageStatus


class TemplateListResponse(CamelModel):
    templates: List[AppTemplate]
    total: int


class TemplateDuplicateRequest(CamelModel):
    new_name: Optional[str] = None


class TemplateImportRequest(CamelModel):
    data: str
    include_built_in: bool = False
    overwrite_existing: bool = False
    create_copies: bool = False
    include_usage_stats: bool = False


class TemplateImportResponse(CamelModel):
    imported: int
    skipped: int
    errors: List[str]


class TemplateUsageRequest(CamelModel):
    build_id: Optional[str] = None
    status: UsageStatus = UsageStatus.USED

