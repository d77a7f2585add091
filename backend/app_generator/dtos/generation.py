"""Generation run DTOs"""

from typing import Any, Dict, Optional

from app_generator.entities.base import CamelModel


class GenerationStatusResponse(CamelModel):
    is_generating: bool
    statistics: Dict[str, Any]


class CancelResponse(CamelModel):
    cancelled: bool
    message: Optional[str] = None
