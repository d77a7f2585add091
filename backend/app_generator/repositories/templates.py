"""Repositories for custom templates and per-template usage statistics."""

import logging
from typing import Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from app_generator.config import settings
from app_generator.database.store import KeyValueStore
from app_generator.entities.template import AppTemplate, TemplateUsage

from .base import DocumentListRepository

logger = logging.getLogger(__name__)


class CustomTemplateRepository(DocumentListRepository[AppTemplate]):
    def __init__(self, store: KeyValueStore, key: Optional[str] = None):
        super().__init__(store, key or settings.TEMPLATES_KEY, AppTemplate)

    def find_by_id(self, template_id: str) -> Optional[AppTemplate]:
        return self.find_one(lambda template: template.id == template_id)


class TemplateUsageRepository:
    """Usage statistics stored as one ``{templateId: usage}`` document."""

    def __init__(self, store: KeyValueStore, key: Optional[str] = None):
        self.store = store
        self.key = key or settings.TEMPLATE_USAGE_KEY

    def load(self) -> Dict[str, TemplateUsage]:
        raw = self.store.get(self.key, {})
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring non-object document stored under '{self.key}'")
            return {}

        usage: Dict[str, TemplateUsage] = {}
        for template_id, doc in raw.items():
            try:
                usage[template_id] = TemplateUsage.model_validate(doc)
            except PydanticValidationError as e:
                logger.warning(f"Skipping invalid usage stats of '{template_id}': {e}")
        return usage

    def save(self, usage: Dict[str, TemplateUsage]) -> None:
        self.store.set(self.key, {template_id: stats.to_document() for template_id, stats in usage.items()})

    def get(self, template_id: str) -> Optional[TemplateUsage]:
        return self.load().get(template_id)

    def put(self, stats: TemplateUsage) -> None:
        usage = self.load()
        usage[stats.template_id] = stats
        self.save(usage)

    def remove(self, template_id: str) -> bool:
        usage = self.load()
        if usage.pop(template_id, None) is None:
            return False
        self.save(usage)
        return True
