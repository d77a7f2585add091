"""
MongoDB connection helpers and the Mongo-backed key-value store.
"""

from __future__ import annotations

import logging
from typing import Any

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from app_generator.database.store import KeyValueStore

logger = logging.getLogger(__name__)

_client: MongoClient | None = None


def get_client() -> MongoClient:
    global _client
    if _client is None:
        # Import settings lazily to ensure env vars are loaded
        from app_generator.config import settings

        logger.info("Initializing MongoClient for key-value storage")
        _client = MongoClient(settings.MONGODB_URI)
    return _client


def get_database() -> Database:
    from app_generator.config import settings

    client = get_client()
    return client[settings.MONGODB_DB_NAME]


class MongoKeyValueStore(KeyValueStore):
    """
    Stores each key as ``{"_id": key, "value": <document>}``.

    Writes replace the whole document (last write wins).
    """

    def __init__(self, collection: Collection):
        self.collection = collection

    def get(self, key: str, default: Any = None) -> Any:
        doc = self.collection.find_one({"_id": key})
        if not doc:
            return default
        return doc.get("value", default)

    def set(self, key: str, value: Any) -> None:
        self.collection.replace_one({"_id": key}, {"_id": key, "value": value}, upsert=True)

    def delete(self, key: str) -> bool:
        result = self.collection.delete_one({"_id": key})
        return result.deleted_count > 0
