"""Authentication DTOs"""

from typing import Optional

from app_generator.entities.base import CamelModel


class GithubAuthRequest(CamelModel):
    username: str
    token: str


class CodemagicAuthRequest(CamelModel):
    api_token: str
    team_id: Optional[str] = None


class AppstoreAuthRequest(CamelModel):
    client_id: str
    client_secret: str
    developer_id: str


class SignOutRequest(CamelModel):
    service: Optional[str] = None
