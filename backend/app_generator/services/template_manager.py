"""
Template manager - built-in catalog plus user-defined templates.

Custom templates and usage statistics are persisted through the key-value
store. Built-in templates are read-only: update and delete only apply to
custom templates, but any template can be duplicated into a custom one.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from app_generator.core.events import EventBus
from app_generator.database.store import KeyValueStore
from app_generator.entities.template import TEMPLATE_CATEGORIES, AppTemplate, TemplateUsage, UsageStatus
from app_generator.repositories.templates import CustomTemplateRepository, TemplateUsageRepository
from app_generator.services.exceptions import NotFoundError, ValidationError
from app_generator.services.validation import validate_template
from app_generator.templates.catalog import BUILT_IN_TEMPLATES, features_for_category
from app_generator.utils.datetime import utc_now, utc_now_iso

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0.0"
BUILT_IN_AUTHOR = "Cordova App Generator"

# Fields a caller may not set directly
_MANAGED_FIELDS = ("isBuiltIn", "isCustom", "createdAt", "updatedAt")


def _built_in_templates() -> List[AppTemplate]:
    return [
        AppTemplate.model_validate(
            {**doc, "isBuiltIn": True, "isCustom": False, "author": BUILT_IN_AUTHOR, "version": "1.0.0"}
        )
        for doc in BUILT_IN_TEMPLATES
    ]


class TemplateManager:
    def __init__(self, store: KeyValueStore, events: Optional[EventBus] = None):
        self.events = events or EventBus("templates")
        self.custom = CustomTemplateRepository(store)
        self.usage = TemplateUsageRepository(store)
        self.built_in = _built_in_templates()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_all_templates(self) -> List[AppTemplate]:
        return [*self.built_in, *self.custom.load()]

    def get_template(self, template_id: str) -> Optional[AppTemplate]:
        for template in self.get_all_templates():
            if template.id == template_id:
                return template
        return None

    def require_template(self, template_id: str) -> AppTemplate:
        template = self.get_template(template_id)
        if template is None:
            raise NotFoundError(f"Template with ID '{template_id}' not found")
        return template

    def resolve_templates(self, template_ids: Iterable[str]) -> List[AppTemplate]:
        """Templates for ``template_ids`` in order; unknown ids are logged and skipped."""
        templates = []
        for template_id in template_ids:
            template = self.get_template(template_id)
            if template is None:
                logger.warning(f"Template not found: {template_id}")
                continue
            templates.append(template)
        return templates

    def get_templates_by_category(self, category: str) -> List[AppTemplate]:
        return [template for template in self.get_all_templates() if template.category == category]

    def get_templates_by_tags(self, tags: Iterable[str] | str) -> List[AppTemplate]:
        wanted = {tags} if isinstance(tags, str) else set(tags)
        return [template for template in self.get_all_templates() if wanted.intersection(template.tags)]

    def search_templates(self, query: str) -> List[AppTemplate]:
        term = query.lower()
        return [
            template
            for template in self.get_all_templates()
            if term in template.name.lower()
            or term in template.display_name.lower()
            or term in template.description.lower()
            or any(term in tag.lower() for tag in template.tags)
        ]

    # ------------------------------------------------------------------
    # Custom templates
    # ------------------------------------------------------------------

    def generate_template_id(self, name: str) -> str:
        base = re.sub(r"[^a-z0-9]", "", name.lower()) or "template"
        template_id = base
        counter = 1
        while self.get_template(template_id) is not None:
            template_id = f"{base}_{counter}"
            counter += 1
        return template_id

    def create_template(self, data: Mapping[str, Any]) -> AppTemplate:
        """Validate and persist a camelCase template document."""
        doc = {key: value for key, value in dict(data).items() if key not in _MANAGED_FIELDS}
        try:
            validate_template(doc)
            if not doc.get("id"):
                doc["id"] = self.generate_template_id(doc["name"])
            if self.get_template(doc["id"]) is not None:
                raise ValidationError(f"Template with ID '{doc['id']}' already exists")

            if not doc.get("category"):
                doc["category"] = "utilities"
            if not doc.get("features"):
                doc["features"] = features_for_category(doc["category"])
            template = self._build(doc)
        except ValidationError as e:
            self.events.emit("template:create:error", {"error": e.message, "errors": e.errors})
            raise

        templates = self.custom.load()
        templates.append(template)
        self._save_custom(templates)
        logger.info(f"Created template {template.id}")
        self.events.emit("template:created", template.to_document())
        return template

    def update_template(self, template_id: str, changes: Mapping[str, Any]) -> AppTemplate:
        templates = self.custom.load()
        for index, existing in enumerate(templates):
            if existing.id == template_id:
                break
        else:
            self.events.emit("template:update:error", {"error": "not found", "templateId": template_id})
            raise NotFoundError(f"Template with ID '{template_id}' not found")

        doc = {
            **existing.to_document(),
            **{key: value for key, value in dict(changes).items() if key not in _MANAGED_FIELDS},
            "id": template_id,
        }
        try:
            validate_template(doc)
            doc["createdAt"] = existing.created_at
            doc["updatedAt"] = utc_now()
            template = self._build(doc)
        except ValidationError as e:
            self.events.emit("template:update:error", {"error": e.message, "templateId": template_id})
            raise

        templates[index] = template
        self._save_custom(templates)
        self.events.emit("template:updated", template.to_document())
        return template

    def delete_template(self, template_id: str) -> AppTemplate:
        templates = self.custom.load()
        remaining = [template for template in templates if template.id != template_id]
        if len(remaining) == len(templates):
            self.events.emit("template:delete:error", {"error": "not found", "templateId": template_id})
            raise NotFoundError(f"Template with ID '{template_id}' not found")

        deleted = next(template for template in templates if template.id == template_id)
        self._save_custom(remaining)
        self.usage.remove(template_id)
        self.events.emit("template:deleted", deleted.to_document())
        return deleted

    def duplicate_template(self, template_id: str, new_name: Optional[str] = None) -> AppTemplate:
        original = self.require_template(template_id)
        doc = original.to_document()
        doc.update(
            {
                "id": None,
                "name": new_name or f"{original.name}_copy",
                "displayName": new_name or f"{original.display_name} (Copy)",
                "baseTemplate": original.id,
                "version": "1.0.0",
                "author": "User",
            }
        )
        return self.create_template(doc)

    def clear_custom_templates(self) -> bool:
        self.custom.clear()
        self.events.emit("templates:cleared", {})
        return True

    def _build(self, doc: Mapping[str, Any]) -> AppTemplate:
        try:
            return AppTemplate.model_validate({**doc, "isBuiltIn": False, "isCustom": True})
        except PydanticValidationError as e:
            errors = [f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()]
            raise ValidationError(f"Template validation failed: {', '.join(errors)}", errors) from e

    def _save_custom(self, templates: List[AppTemplate]) -> None:
        self.custom.save(templates)
        self.events.emit("templates:saved", {"count": len(templates)})

    # ------------------------------------------------------------------
    # Usage statistics
    # ------------------------------------------------------------------

    def record_template_usage(
        self,
        template_id: str,
        build_id: Optional[str] = None,
        status: UsageStatus | str = UsageStatus.USED,
    ) -> TemplateUsage:
        """
        Record that ``template_id`` was used.

        ``used``/``building`` count a new usage (once per build id); ``success``
        and ``failed`` record the outcome of a build already counted.
        """
        status = UsageStatus(status)
        stats = self.usage.get(template_id) or TemplateUsage(template_id=template_id)

        known_build = build_id is not None and build_id in stats.build_ids
        if not known_build:
            stats.usage_count += 1
            if build_id is not None:
                stats.build_ids.append(build_id)
        if status is UsageStatus.SUCCESS:
            stats.success_count += 1
        elif status is UsageStatus.FAILED:
            stats.failure_count += 1
        stats.last_used = utc_now()

        self.usage.put(stats)
        self.events.emit(
            "template:usage:recorded",
            {"templateId": template_id, "status": status.value, "stats": stats.to_document()},
        )
        return stats

    def get_template_usage_stats(self, template_id: str) -> TemplateUsage:
        return self.usage.get(template_id) or TemplateUsage(template_id=template_id)

    def get_all_usage_stats(self) -> Dict[str, TemplateUsage]:
        return self.usage.load()

    def get_template_statistics(self) -> Dict[str, Any]:
        templates = self.get_all_templates()
        categories: Dict[str, int] = {}
        for template in templates:
            categories[template.category] = categories.get(template.category, 0) + 1

        usage = self.usage.load()
        most_used = None
        if usage:
            top = max(usage.values(), key=lambda stats: stats.usage_count)
            if top.usage_count > 0:
                most_used = {"templateId": top.template_id, "usageCount": top.usage_count}

        return {
            "total": len(templates),
            "builtIn": len(self.built_in),
            "custom": len(templates) - len(self.built_in),
            "categories": categories,
            "mostUsed": most_used,
            "totalUsage": sum(stats.usage_count for stats in usage.values()),
        }

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def export_templates(self, include_built_in: bool = False, include_usage_stats: bool = True) -> str:
        templates = self.get_all_templates() if include_built_in else self.custom.load()
        usage = self.usage.load() if include_usage_stats else {}
        return json.dumps(
            {
                "exportDate": utc_now_iso(),
                "version": EXPORT_FORMAT_VERSION,
                "generator": BUILT_IN_AUTHOR,
                "templates": [template.to_document() for template in templates],
                "usageStats": {template_id: stats.to_document() for template_id, stats in usage.items()},
                "categories": TEMPLATE_CATEGORIES,
            },
            indent=2,
            ensure_ascii=False,
        )

    def import_templates(
        self,
        json_data: str,
        include_built_in: bool = False,
        overwrite_existing: bool = False,
        create_copies: bool = False,
        include_usage_stats: bool = False,
    ) -> Dict[str, Any]:
        """Import templates exported by ``export_templates``; per-template errors are collected."""
        try:
            data = json.loads(json_data)
        except ValueError as e:
            self.events.emit("templates:import:error", {"error": str(e)})
            raise ValidationError(f"Invalid template data: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("templates"), list):
            self.events.emit("templates:import:error", {"error": "Invalid template data format"})
            raise ValidationError("Invalid template data format")

        results: Dict[str, Any] = {"imported": 0, "skipped": 0, "errors": []}
        for doc in data["templates"]:
            if not isinstance(doc, dict):
                results["errors"].append("Template entry is not an object")
                continue
            if doc.get("isBuiltIn") and not include_built_in:
                results["skipped"] += 1
                continue

            try:
                template_id = doc.get("id")
                if template_id and self.get_template(template_id) is not None:
                    if overwrite_existing:
                        self.update_template(template_id, doc)
                    elif create_copies:
                        self.create_template({**doc, "id": None, "name": f"{doc.get('name')}_imported"})
                    else:
                        results["skipped"] += 1
                        continue
                else:
                    self.create_template(doc)
            except (ValidationError, NotFoundError) as e:
                results["errors"].append(f"Template '{doc.get('name')}': {e.message}")
                continue
            results["imported"] += 1

        usage_stats = data.get("usageStats")
        if include_usage_stats and isinstance(usage_stats, dict):
            usage = self.usage.load()
            for template_id, doc in usage_stats.items():
                try:
                    usage[template_id] = TemplateUsage.model_validate(doc)
                except PydanticValidationError as e:
                    results["errors"].append(f"Usage stats of '{template_id}': {e.error_count()} invalid field(s)")
            self.usage.save(usage)

        self.events.emit("templates:imported", results)
        return results
