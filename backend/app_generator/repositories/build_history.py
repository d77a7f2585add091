"""Repository for the persisted build history (newest first, capped)."""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from app_generator.config import settings
from app_generator.database.store import KeyValueStore
from app_generator.entities.build_record import BuildRecord
from app_generator.utils.datetime import utc_now

from .base import DocumentListRepository


class BuildHistoryRepository(DocumentListRepository[BuildRecord]):
    def __init__(
        self,
        store: KeyValueStore,
        key: Optional[str] = None,
        limit: Optional[int] = None,
    ):
        super().__init__(store, key or settings.BUILD_HISTORY_KEY, BuildRecord)
        self.limit = limit or settings.BUILD_HISTORY_LIMIT

    def save(self, items: List[BuildRecord]) -> None:
        """Persist at most ``limit`` records; the oldest tail is dropped."""
        super().save(items[: self.limit])

    def find_by_build_id(self, build_id: str) -> Optional[BuildRecord]:
        return self.find_one(lambda record: record.build_id == build_id)

    def upsert(self, record: BuildRecord) -> BuildRecord:
        """Replace the record with the same build id, or insert it at the front."""
        history = self.load()
        for index, existing in enumerate(history):
            if existing.build_id == record.build_id:
                history[index] = record
                break
        else:
            history.insert(0, record)

        self.save(history)
        return record

    def remove_older_than(self, days: int, now: Optional[datetime] = None) -> Tuple[int, int]:
        """
        Drop records whose ``timestamp`` is older than ``days``.

        Returns (removed, remaining). Nothing is written when no record expired.
        """
        cutoff = (now or utc_now()) - timedelta(days=days)
        history = self.load()
        kept = [record for record in history if record.timestamp >= cutoff]
        removed = len(history) - len(kept)
        if removed:
            self.save(kept)
        return removed, len(kept)
