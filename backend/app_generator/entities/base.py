"""Shared base model for persisted and exchanged documents."""

from typing import Any, Dict

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base model whose JSON form uses camelCase keys.

    Python code uses snake_case attributes; stored documents and API payloads
    use the camelCase aliases (``appName``, ``buildId``...). Both spellings are
    accepted on input.
    """

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        use_enum_values = False

    def to_document(self) -> Dict[str, Any]:
        """JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
