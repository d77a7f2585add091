"""Shared fixtures for the unit tests: mock HTTP routing and sample data."""

import asyncio
import re
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx

from app_generator.entities.generated_app import AppConfig, GeneratedApp
from app_generator.entities.generation_run import GenerationRequest
from app_generator.entities.repository import Repository
from app_generator.entities.template import AppTemplate

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class MockApi:
    """
    Route table behind ``httpx.MockTransport``.

    Each route is a method plus a regex matched against the URL path. A route
    given several responses replays them in order and repeats the last one.
    Unmatched requests get a 404.
    """

    def __init__(self):
        self.routes: List[Tuple[str, re.Pattern, List[Responder]]] = []
        self.requests: List[httpx.Request] = []

    def add(self, method: str, pattern: str, *responses: Responder) -> "MockApi":
        self.routes.append((method.upper(), re.compile(pattern), list(responses)))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for method, pattern, responses in self.routes:
            if method == request.method and pattern.fullmatch(request.url.path):
                responder = responses.pop(0) if len(responses) > 1 else responses[0]
                if callable(responder):
                    return responder(request)
                return httpx.Response(responder.status_code, headers=responder.headers, content=responder.content)
        return httpx.Response(404, json={"message": "Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str, pattern: str) -> List[httpx.Request]:
        compiled = re.compile(pattern)
        return [r for r in self.requests if r.method == method.upper() and compiled.fullmatch(r.url.path)]


class FakeSleep:
    """Records requested delays and only yields to the event loop."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


class EventRecorder:
    """``on_any`` subscriber keeping every (event, payload) pair."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def __call__(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, payload))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def count(self, event: str) -> int:
        return sum(1 for name, _ in self.events if name == event)

    def payloads(self, event: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]


def github_repo(name: str, owner: str = "octo") -> Dict[str, Any]:
    return {
        "name": name,
        "full_name": f"{owner}/{name}",
        "description": f"{name} repository",
        "private": False,
        "html_url": f"https://github.com/{owner}/{name}",
        "clone_url": f"https://github.com/{owner}/{name}.git",
        "ssh_url": f"git@github.com:{owner}/{name}.git",
    }


def make_repository(name: str = "demo", owner: str = "octo", created: bool = True) -> Repository:
    return Repository.from_github(github_repo(name, owner), created=created)


def make_template(template_id: str = "demo", name: str = "demo", **overrides: Any) -> AppTemplate:
    data = {
        "id": template_id,
        "name": name,
        "display_name": "Demo App",
        "description": "A demo Cordova app",
        "category": "utilities",
        "plugins": ["cordova-plugin-device"],
        "features": ["Offline mode"],
        "tags": ["demo"],
    }
    data.update(overrides)
    return AppTemplate(**data)


def make_app_config(app_name: str = "demo", **overrides: Any) -> AppConfig:
    data = {
        "package_prefix": "com.test",
        "author_name": "Test Author",
        "author_email": "author@example.com",
        "github_username": "octo",
        "app_name": app_name,
        "display_name": "Demo App",
        "description": "A demo Cordova app",
        "package_name": f"com.test.{app_name}",
        "template_id": app_name,
    }
    data.update(overrides)
    return AppConfig(**data)


def make_app(files: Dict[str, str], app_name: str = "demo", config: Optional[AppConfig] = None) -> GeneratedApp:
    config = config or make_app_config(app_name)
    return GeneratedApp(
        template=make_template(app_name, app_name),
        config=config,
        files=files,
        package_name=config.package_name,
    )


def make_request(**overrides: Any) -> GenerationRequest:
    data = {
        "template_ids": ["climate-monitor"],
        "package_prefix": "com.test",
        "author_name": "Test Author",
        "author_email": "author@example.com",
        "github_username": "octo",
        "github_token": "ghp_" + "a" * 36,
    }
    data.update(overrides)
    return GenerationRequest(**data)
