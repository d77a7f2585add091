"""
Key-value persistence used by the build history, templates and configuration.

Values are JSON-compatible documents addressed by a fixed key, so the same
manager code runs against a directory of JSON files, a MongoDB collection or
plain memory (tests).
"""

from __future__ import annotations

import copy
import json
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStore(ABC):
    """get/set/delete of JSON documents by key."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...

    def exists(self, key: str) -> bool:
        return self.get(key) is not None


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store. Values are deep-copied on the way in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None


class JsonFileKeyValueStore(KeyValueStore):
    """One ``<key>.json`` file per key inside a directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_SAFE_KEY.sub('_', key)}.json"

    def get(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        try:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read {path}: {e}")
            return default

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        # Sibling temp file plus atomic rename
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        return True


def create_store(backend: Optional[str] = None) -> KeyValueStore:
    """Build the store selected by ``STORAGE_BACKEND``."""
    from app_generator.config import settings

    backend = (backend or settings.STORAGE_BACKEND).lower()
    if backend == "memory":
        return MemoryKeyValueStore()
    if backend == "mongo":
        from app_generator.database.mongo import MongoKeyValueStore, get_database

        return MongoKeyValueStore(get_database()[settings.MONGODB_COLLECTION])
    if backend == "file":
        return JsonFileKeyValueStore(settings.STORAGE_DIR)
    raise ValueError(f"Unknown storage backend: {backend}")
