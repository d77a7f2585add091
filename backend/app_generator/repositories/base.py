"""Base repository for lists of documents stored under one key."""

import logging
from typing import Callable, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from app_generator.database.store import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class DocumentListRepository(Generic[T]):
    """
    A JSON array of ``model_cls`` documents kept under ``key``.

    Invalid entries found on load are logged and skipped.
    """

    def __init__(self, store: KeyValueStore, key: str, model_cls: Type[T]):
        self.store = store
        self.key = key
        self.model_cls = model_cls

    def load(self) -> List[T]:
        raw = self.store.get(self.key, [])
        if not isinstance(raw, list):
            logger.warning(f"Ignoring non-list document stored under '{self.key}'")
            return []

        items: List[T] = []
        for doc in raw:
            try:
                items.append(self.model_cls.model_validate(doc))
            except PydanticValidationError as e:
                logger.warning(f"Skipping invalid {self.model_cls.__name__} in '{self.key}': {e}")
        return items

    def save(self, items: List[T]) -> None:
        self.store.set(self.key, [item.model_dump(mode="json", by_alias=True) for item in items])

    def clear(self) -> bool:
        return self.store.delete(self.key)

    def find_one(self, predicate: Callable[[T], bool]) -> Optional[T]:
        for item in self.load():
            if predicate(item):
                return item
        return None

    def find_many(self, predicate: Callable[[T], bool]) -> List[T]:
        return [item for item in self.load() if predicate(item)]
