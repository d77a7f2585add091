"""Amazon Appstore shapes."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app_generator.utils.datetime import utc_now

from .base import CamelModel


class AppstoreListing(CamelModel):
    """Store listing of a new application."""

    title: str
    package_name: str
    category: str = "ENTERTAINMENT"
    description: str = ""
    short_description: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    developer_name: str = ""
    support_email: str = ""
    privacy_policy_url: Optional[str] = None
    content_rating: str = "Everyone"


class AppstoreApp(CamelModel):
    app_id: str
    app_name: str
    package_name: str
    status: Optional[str] = None


class ApkUploadResult(CamelModel):
    app_id: str
    edit_id: str
    file_name: str
    upload_url: str
    status: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)


class AppstoreAppStatus(CamelModel):
    app_id: str
    status: Optional[str] = None
    title: Optional[str] = None
    package_name: Optional[str] = None
    last_updated: Optional[str] = None
    version: Optional[str] = None


class SubmissionResult(CamelModel):
    app_id: str
    submission_id: Optional[str] = None
    status: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
