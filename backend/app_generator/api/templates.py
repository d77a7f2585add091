"""App template catalog endpoints."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status

from app_generator.api.deps import get_templates
from app_generator.dtos.templates import (
    TemplateDuplicateRequest,
    TemplateImportRequest,
    TemplateImportResponse,
    TemplateListResponse,
    TemplateUsageRequest,
)
from app_generator.entities.template import AppTemplate, TemplateUsage
from app_generator.services.template_manager import TemplateManager

router = APIRouter(prefix="/templates", tags=["Templates"])


@router.get("", response_model=TemplateListResponse)
def list_templates(
    search: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    tags: Optional[List[str]] = Query(default=None),
    manager: TemplateManager = Depends(get_templates),
):
    """List templates, optionally filtered by a search term, a category or tags."""
    if search:
        templates = manager.search_templates(search)
    elif category:
        templates = manager.get_templates_by_category(category)
    elif tags:
        templates = manager.get_templates_by_tags(tags)
    else:
        templates = manager.get_all_templates()
    return TemplateListResponse(templates=templates, total=len(templates))


@router.post("", response_model=AppTemplate, status_code=status.HTTP_201_CREATED)
def create_template(
    body: Dict[str, Any] = Body(...),
    manager: TemplateManager = Depends(get_templates),
):
    return manager.create_template(body)


@router.get("/stats")
def template_statistics(manager: TemplateManager = Depends(get_templates)):
    return manager.get_template_statistics()


@router.get("/export")
def export_templates(
    include_built_in: bool = Query(default=False, alias="includeBuiltIn"),
    include_usage_stats: bool = Query(default=True, alias="includeUsageStats"),
    manager: TemplateManager = Depends(get_templates),
):
    return Response(
        content=manager.export_templates(include_built_in, include_usage_stats),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="templates.json"'},
    )


@router.post("/import", response_model=TemplateImportResponse)
def import_templates(body: TemplateImportRequest, manager: TemplateManager = Depends(get_templates)):
    return manager.import_templates(
        body.data,
        include_built_in=body.include_built_in,
        overwrite_existing=body.overwrite_existing,
        create_copies=body.create_copies,
        include_usage_stats=body.include_usage_stats,
    )


@router.get("/{template_id}", response_model=AppTemplate)
def get_template(template_id: str, manager: TemplateManager = Depends(get_templates)):
    return manager.require_template(template_id)


@router.put("/{template_id}", response_model=AppTemplate)
def update_template(
    template_id: str,
    body: Dict[str, Any] = Body(...),
    manager: TemplateManager = Depends(get_templates),
):
    return manager.update_template(template_id, body)


@router.delete("/{template_id}", response_model=AppTemplate)
def delete_template(template_id: str, manager: TemplateManager = Depends(get_templates)):
    return manager.delete_template(template_id)


@router.post("/{template_id}/duplicate", response_model=AppTemplate, status_code=status.HTTP_201_CREATED)
def duplicate_template(
    template_id: str,
    body: TemplateDuplicateRequest,
    manager: TemplateManager = Depends(get_templates),
):
    return manager.duplicate_template(template_id, body.new_name)


@router.get("/{template_id}/usage", response_model=TemplateUsage)
def template_usage(template_id: str, manager: TemplateManager = Depends(get_templates)):
    manager.require_template(template_id)
    return manager.get_template_usage_stats(template_id)


@router.post("/{template_id}/usage", response_model=TemplateUsage)
def record_usage(
    template_id: str,
    body: TemplateUsageRequest,
    manager: TemplateManager = Depends(get_templates),
):
    manager.require_template(template_id)
    return manager.record_template_usage(template_id, body.build_id, body.status)
