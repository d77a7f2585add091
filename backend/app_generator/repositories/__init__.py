"""Repository layer for store operations"""

from .base import DocumentListRepository
from .build_history import BuildHistoryRepository
from .templates import CustomTemplateRepository, TemplateUsageRepository

__all__ = [
    "BuildHistoryRepository",
    "CustomTemplateRepository",
    "DocumentListRepository",
    "TemplateUsageRepository",
]
