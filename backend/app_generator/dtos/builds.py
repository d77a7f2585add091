"""Build tracking DTOs"""

from typing import List, Optional

from app_generator.entities.base import CamelModel
from app_generator.entities.build_record import BuildRecord


class BuildListResponse(CamelModel):
    builds: List[BuildRecord]
    total: int


class BuildRefreshResponse(CamelModel):
    build: Optional[BuildRecord] = None
    updated: bool


class PollingResponse(CamelModel):
    build_id: str
    polling: bool
    changed: bool


class BuildHistoryImportRequest(CamelModel):
    data: str


class BuildHistoryCleanResponse(CamelModel):
    removed: int
