"""GitHub repository as returned by the create/lookup calls (session-only)."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from app_generator.utils.datetime import utc_now

from .base import CamelModel


class Repository(CamelModel):
    name: str
    full_name: str
    description: Optional[str] = None
    private: bool = False
    html_url: str = ""
    clone_url: str = ""
    ssh_url: Optional[str] = None
    created: bool = False
    existing: bool = False
    timestamp: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_github(cls, data: Dict[str, Any], created: bool) -> "Repository":
        return cls(
            name=data.get("name", ""),
            full_name=data.get("full_name", ""),
            description=data.get("description"),
            private=bool(data.get("private", False)),
            html_url=data.get("html_url", ""),
            clone_url=data.get("clone_url", ""),
            ssh_url=data.get("ssh_url"),
            created=created,
            existing=not created,
        )


class PagesStatus(CamelModel):
    """GitHub Pages state of a repository."""

    success: bool
    url: Optional[str] = None
    status: Optional[str] = None
    source: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def is_built(self) -> bool:
        return self.success and self.status == "built"
