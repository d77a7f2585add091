import asyncio
import unittest
from unittest.mock import patch

import httpx

from app_generator.core.events import EventBus
from app_generator.database.store import MemoryKeyValueStore
from app_generator.entities.build_record import BuildStatus
from app_generator.entities.codemagic import TriggeredBuild
from app_generator.services.build_status_manager import BuildStatusManager
from app_generator.services.codemagic import CodemagicClient
from app_generator.services.cordova_builder import CordovaBuilder
from app_generator.services.exceptions import (
    ErrorKind,
    GenerationInProgressError,
    GithubError,
    NotFoundError,
    ValidationError,
)
from app_generator.services.generator import AppGenerator
from app_generator.services.github.client import GitHubClient
from app_generator.services.github.uploader import RepositoryUploader
from app_generator.services.orchestrator import AppController
from app_generator.services.template_manager import TemplateManager

from support import EventRecorder, FakeSleep, MockApi, github_repo, make_request

CODEMAGIC_TOKEN = "c" * 43


class GatedSleep(FakeSleep):
    """Blocks every sleep until ``gate`` is set."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await self.gate.wait()


def _github_routes(api: MockApi, repo_name: str = "ClimateMonitor") -> MockApi:
    api.add("GET", "/user", httpx.Response(200, json={"login": "octo"}))
    api.add("HEAD", "/user", httpx.Response(200, headers={"X-OAuth-Scopes": "repo"}))
    api.add("POST", "/user/repos", httpx.Response(201, json=github_repo(repo_name)))
    api.add("PUT", f"/repos/octo/{repo_name}/contents/.*", httpx.Response(201, json={"commit": {"sha": "abc123"}}))
    return api


def _codemagic_routes(api: MockApi, build_statuses=("building",)) -> MockApi:
    api.add("GET", "/apps", httpx.Response(200, json={"applications": []}))
    api.add("POST", "/apps", httpx.Response(201, json={"_id": "app-1", "appName": "ClimateMonitor"}))
    api.add("POST", "/builds", httpx.Response(201, json={"buildId": "b1"}))
    api.add(
        "GET",
        "/builds/b1",
        *[
            httpx.Response(200, json={"build": {"_id": "b1", "status": status}, "application": {"_id": "app-1"}})
            for status in build_statuses
        ],
    )
    api.add(
        "GET",
        "/builds",
        httpx.Response(200, json={"builds": [{"artefacts": [{"name": "app-release.apk", "type": "apk"}]}]}),
    )
    return api


class ControllerTestCase(unittest.IsolatedAsyncioTestCase):
    def _controller(self, api: MockApi, poll_sleep=None) -> AppController:
        store = MemoryKeyValueStore()
        github = GitHubClient(transport=api.transport, auto_enable_pages=False)
        self.upload_sleep = FakeSleep()
        self.poll_sleep = poll_sleep or GatedSleep()
        self.build_status = BuildStatusManager(CodemagicClient(transport=api.transport), store, sleep=self.poll_sleep)
        self.templates = TemplateManager(store)
        self.ui_events = EventBus("ui")
        self.recorder = EventRecorder()
        self.ui_events.on_any(self.recorder)
        controller = AppController(
            github=github,
            uploader=RepositoryUploader(github, sleep=self.upload_sleep),
            codemagic=self.build_status.codemagic,
            build_status=self.build_status,
            generator=AppGenerator(),
            builder=CordovaBuilder(),
            templates=self.templates,
            ui_events=self.ui_events,
        )
        self.addCleanup(self.build_status.stop_all_polling)
        return controller


class TestGenerationRun(ControllerTestCase):
    async def test_generation_only(self):
        api = MockApi()
        controller = self._controller(api)

        result = await controller.start_generation(make_request(template_ids=["climate-monitor", "study-timer"]))

        self.assertEqual(result.generation.successful_apps, 2)
        self.assertIsNone(result.github_results)
        self.assertTrue(result.github_skipped.skipped)
        self.assertEqual(api.requests, [])
        self.assertEqual(self.recorder.names()[0], "run:start")
        self.assertEqual(self.recorder.names()[-1], "run:complete")
        self.assertIn("generator:generation:complete", self.recorder.names())
        self.assertFalse(controller.is_generating)
        self.assertIs(controller.last_result, result)

    async def test_full_run_pushes_and_triggers_build(self):
        api = _codemagic_routes(_github_routes(MockApi()))
        controller = self._controller(api)

        result = await controller.start_generation(
            make_request(
                create_github_repos=True,
                push_to_github=True,
                enable_build_preparation=True,
                enable_codemagic_integration=True,
                codemagic_api_token=CODEMAGIC_TOKEN,
            )
        )

        self.assertEqual(result.build_preparation.successful_builds, 1)
        self.assertEqual(result.successful_repositories, 1)
        pushed = {request.url.path.split("/contents/")[1] for request in api.calls("PUT", "/repos/.*")}
        self.assertIn("codemagic.yaml", pushed)
        self.assertIn("www/manifest.json", pushed)

        outcome = result.codemagic_results[0]
        self.assertTrue(outcome.success)
        self.assertEqual(outcome.build.build_id, "b1")

        build = self.build_status.get_build("b1")
        self.assertEqual(build.status, BuildStatus.QUEUED)
        self.assertEqual(build.template_id, "climate-monitor")
        self.assertEqual(build.project_url, "https://codemagic.io/app/app-1")
        self.assertTrue(self.build_status.is_polling("b1"))
        self.assertEqual(self.templates.get_template_usage_stats("climate-monitor").usage_count, 1)

        self.assertIn("github:repo:push:success", self.recorder.names())
        self.assertIn("codemagic:build:trigger:success", self.recorder.names())
        self.assertEqual(self.recorder.payloads("run:complete")[0]["codemagicBuilds"], 1)

    async def test_codemagic_auth_failure_only_skips_codemagic(self):
        api = _github_routes(MockApi())
        api.add("GET", "/apps", httpx.Response(401, json={"message": "Unauthorized"}))
        controller = self._controller(api)

        result = await controller.start_generation(
            make_request(
                create_github_repos=True,
                enable_codemagic_integration=True,
                codemagic_api_token=CODEMAGIC_TOKEN,
            )
        )

        self.assertEqual(result.successful_repositories, 1)
        self.assertIsNone(result.codemagic_results)
        self.assertIn("Codemagic authentication failed", result.codemagic_skipped.reason)

    async def test_short_codemagic_token_skips_codemagic(self):
        api = _github_routes(MockApi())
        controller = self._controller(api)

        result = await controller.start_generation(
            make_request(create_github_repos=True, enable_codemagic_integration=True, codemagic_api_token="short")
        )

        self.assertTrue(result.codemagic_skipped.skipped)
        self.assertEqual(api.calls("GET", "/apps"), [])

    async def test_failed_repository_is_reported_to_codemagic_stage(self):
        api = _codemagic_routes(_github_routes(MockApi()))
        api.routes = [route for route in api.routes if route[0] != "PUT"]
        api.add("PUT", "/repos/.*", httpx.Response(404, json={"message": "Not Found"}))
        controller = self._controller(api)

        result = await controller.start_generation(
            make_request(
                create_github_repos=True,
                enable_codemagic_integration=True,
                codemagic_api_token=CODEMAGIC_TOKEN,
            )
        )

        self.assertEqual(result.github_results[0].error_kind, ErrorKind.INVALID_REPOSITORY.value)
        self.assertEqual(result.codemagic_results[0].error, "GitHub repository creation failed")
        self.assertEqual(api.calls("POST", "/apps"), [])

    async def test_github_auth_failure_aborts_run(self):
        api = MockApi().add("GET", "/user", httpx.Response(401, json={"message": "Bad credentials"}))
        controller = self._controller(api)

        with self.assertRaises(GithubError) as ctx:
            await controller.start_generation(make_request(create_github_repos=True))

        self.assertEqual(ctx.exception.kind, ErrorKind.AUTHENTICATION)
        self.assertEqual(self.recorder.payloads("run:error")[0]["kind"], "authentication")
        self.assertFalse(controller.is_generating)

    async def test_request_guards(self):
        controller = self._controller(MockApi())

        with self.assertRaises(ValidationError):
            await controller.start_generation(make_request(template_ids=[]))
        with self.assertRaises(ValidationError):
            await controller.start_generation(make_request(template_ids=["climate-monitor"] * 11))
        with self.assertRaises(ValidationError):
            await controller.start_generation(make_request(template_ids=["does-not-exist"]))
        with self.assertRaises(ValidationError):
            await controller.start_generation(make_request(author_email="nope"))

        controller.is_generating = True
        with self.assertRaises(GenerationInProgressError):
            await controller.start_generation(make_request())

    async def test_cancel_between_apps(self):
        controller = self._controller(MockApi())
        self.assertFalse(controller.cancel_generation())

        controller.generator.events.on("generation:app-complete", lambda payload: controller.cancel_generation())
        result = await controller.start_generation(make_request(template_ids=["climate-monitor", "study-timer"]))

        self.assertTrue(result.generation.cancelled)
        self.assertEqual(len(result.generation.results), 1)
        self.assertEqual(self.recorder.count("run:cancelled"), 1)
        self.assertFalse(controller._cancel_requested)

    async def test_retry_app(self):
        api = _github_routes(MockApi())
        controller = self._controller(api)

        outcome = await controller.retry_app("climate-monitor", make_request())

        self.assertTrue(outcome.success)
        self.assertEqual(outcome.repository.full_name, "octo/ClimateMonitor")
        self.assertEqual(self.recorder.names()[-1], "retry:success")

    async def test_retry_unknown_template(self):
        controller = self._controller(MockApi())
        with self.assertRaises(NotFoundError):
            await controller.retry_app("nope", make_request())


class TestBuildTracking(ControllerTestCase):
    async def test_build_is_tracked_until_success(self):
        api = _codemagic_routes(
            _github_routes(MockApi()),
            build_statuses=("building", "building", "building", "finished"),
        )
        controller = self._controller(api)

        await controller.start_generation(
            make_request(
                create_github_repos=True,
                enable_codemagic_integration=True,
                codemagic_api_token=CODEMAGIC_TOKEN,
            )
        )
        poller = self.build_status._active_polling["b1"]
        self.poll_sleep.gate.set()
        await poller

        self.assertEqual(self.poll_sleep.calls, [45.0] * 4)
        self.assertFalse(self.build_status.is_polling("b1"))
        self.assertEqual(len(api.calls("GET", "/builds/b1")), 4)

        build = self.build_status.get_build("b1")
        self.assertEqual(build.status, BuildStatus.SUCCESS)
        self.assertEqual([artifact.name for artifact in build.artifacts], ["app-release.apk"])

        self.assertEqual(self.recorder.count("builds:build:completed"), 1)
        self.assertEqual(self.recorder.payloads("builds:build:completed")[0]["status"], "success")
        usage = self.templates.get_template_usage_stats("climate-monitor")
        self.assertEqual((usage.usage_count, usage.success_count, usage.failure_count), (1, 1, 0))

        # A refresh of the finished build makes no further calls
        await self.build_status.update_build_status("b1")
        self.assertEqual(len(api.calls("GET", "/builds/b1")), 4)

    async def test_failed_build_records_failure(self):
        api = _codemagic_routes(_github_routes(MockApi()), build_statuses=("failed",))
        controller = self._controller(api)

        await controller.start_generation(
            make_request(
                create_github_repos=True,
                enable_codemagic_integration=True,
                codemagic_api_token=CODEMAGIC_TOKEN,
            )
        )
        poller = self.build_status._active_polling["b1"]
        self.poll_sleep.gate.set()
        await poller

        self.assertEqual(self.build_status.get_build("b1").status, BuildStatus.FAILED)
        self.assertEqual(api.calls("GET", "/builds"), [])
        usage = self.templates.get_template_usage_stats("climate-monitor")
        self.assertEqual((usage.usage_count, usage.failure_count), (1, 1))

    async def test_unrecorded_build_is_not_polled(self):
        controller = self._controller(MockApi())
        build = TriggeredBuild(
            build_id="b9",
            application_id="app-1",
            workflow_id="cordova_android_build",
            branch="main",
            build_url="https://codemagic.io/app/app-1/build/b9",
        )

        with patch.object(self.build_status, "save_build", return_value=None):
            tracked = controller.track_build(build, "ClimateMonitor", "climate-monitor")

        self.assertFalse(tracked)
        self.assertFalse(self.build_status.is_polling("b9"))
        self.assertEqual(self.templates.get_template_usage_stats("climate-monitor").usage_count, 0)

    async def test_recorded_build_is_polled(self):
        controller = self._controller(MockApi())
        build = TriggeredBuild(
            build_id="b9",
            application_id="app-1",
            workflow_id="cordova_android_build",
            branch="main",
            build_url="https://codemagic.io/app/app-1/build/b9",
        )

        self.assertTrue(controller.track_build(build, "ClimateMonitor", "climate-monitor"))
        self.assertTrue(self.build_status.is_polling("b9"))
        self.assertEqual(self.build_status.get_build("b9").status, BuildStatus.QUEUED)
        self.assertEqual(self.templates.get_template_usage_stats("climate-monitor").usage_count, 1)
