import asyncio
import unittest

import httpx

from app_generator.services.exceptions import ErrorKind, GithubError
from app_generator.services.github.client import GitHubClient

from support import EventRecorder, FakeSleep, MockApi, github_repo, make_app_config

TOKEN = "ghp_" + "a" * 36


def _client(api: MockApi, **kwargs) -> GitHubClient:
    kwargs.setdefault("auto_enable_pages", False)
    return GitHubClient(transport=api.transport, **kwargs)


async def _authenticated(api: MockApi, **kwargs) -> GitHubClient:
    api.add("GET", "/user", httpx.Response(200, json={"login": "octo"}))
    client = _client(api, **kwargs)
    await client.authenticate("octo", TOKEN)
    return client


class TestAuthentication(unittest.IsolatedAsyncioTestCase):
    async def test_authenticate_uses_login_of_token(self):
        api = MockApi().add("GET", "/user", httpx.Response(200, json={"login": "Octo-Cat"}))
        client = _client(api)
        recorder = EventRecorder()
        client.events.on_any(recorder)

        self.assertTrue(await client.authenticate("someone", TOKEN))

        self.assertTrue(client.is_authenticated)
        self.assertEqual(client.username, "Octo-Cat")
        self.assertEqual(api.requests[0].headers["Authorization"], f"token {TOKEN}")
        self.assertEqual(recorder.names(), ["auth:start", "auth:success"])

    async def test_invalid_token_raises_authentication_error(self):
        api = MockApi().add("GET", "/user", httpx.Response(401, json={"message": "Bad credentials"}))
        client = _client(api)

        with self.assertRaises(GithubError) as ctx:
            await client.authenticate("octo", TOKEN)

        self.assertEqual(ctx.exception.kind, ErrorKind.AUTHENTICATION)
        self.assertFalse(ctx.exception.retryable)
        self.assertFalse(client.is_authenticated)
        self.assertIsNone(client.token)

    async def test_missing_username_is_rejected_without_request(self):
        api = MockApi()
        with self.assertRaises(GithubError) as ctx:
            await _client(api).authenticate("  ", TOKEN)
        self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)
        self.assertEqual(api.requests, [])

    async def test_network_failure_is_classified(self):
        def fail(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = GitHubClient(transport=httpx.MockTransport(fail), auto_enable_pages=False)
        with self.assertRaises(GithubError) as ctx:
            await client.authenticate("octo", TOKEN)
        self.assertEqual(ctx.exception.kind, ErrorKind.NETWORK)
        self.assertTrue(ctx.exception.retryable)

    async def test_token_scopes(self):
        api = MockApi().add("HEAD", "/user", httpx.Response(200, headers={"X-OAuth-Scopes": "repo, read:org"}))
        client = await _authenticated(api)

        result = await client.validate_token_permissions()
        self.assertEqual(result["scopes"], ["repo", "read:org"])

    async def test_token_without_repo_scope_is_rejected(self):
        api = MockApi().add("HEAD", "/user", httpx.Response(200, headers={"X-OAuth-Scopes": "gist"}))
        client = await _authenticated(api)

        with self.assertRaises(GithubError) as ctx:
            await client.validate_token_permissions()
        self.assertEqual(ctx.exception.kind, ErrorKind.PERMISSION_DENIED)

    async def test_sign_out_clears_credentials(self):
        client = await _authenticated(MockApi())
        client.sign_out()
        self.assertEqual(client.auth_status(), {"authenticated": False, "username": None, "hasToken": False})


class TestRepositories(unittest.IsolatedAsyncioTestCase):
    async def test_existing_repository_is_reused(self):
        api = MockApi().add("GET", "/repos/octo/demo", httpx.Response(200, json=github_repo("demo")))
        client = await _authenticated(api)

        repository = await client.create_repository(make_app_config("demo"))

        self.assertTrue(repository.existing)
        self.assertFalse(repository.created)
        self.assertEqual(api.calls("POST", "/user/repos"), [])

    async def test_missing_repository_is_created(self):
        api = (
            MockApi()
            .add("GET", "/repos/octo/demo", httpx.Response(404, json={"message": "Not Found"}))
            .add("POST", "/user/repos", httpx.Response(201, json=github_repo("demo")))
        )
        client = await _authenticated(api)

        repository = await client.create_repository(make_app_config("demo"))

        self.assertTrue(repository.created)
        self.assertEqual(repository.clone_url, "https://github.com/octo/demo.git")
        body = api.calls("POST", "/user/repos")[0].content
        self.assertIn(b'"auto_init":false', body.replace(b" ", b""))

    async def test_create_requires_authentication(self):
        with self.assertRaises(GithubError) as ctx:
            await _client(MockApi()).create_repository(make_app_config("demo"))
        self.assertEqual(ctx.exception.kind, ErrorKind.AUTHENTICATION)

    async def test_server_error_is_retryable(self):
        api = (
            MockApi()
            .add("GET", "/repos/octo/demo", httpx.Response(404, json={}))
            .add("POST", "/user/repos", httpx.Response(503, json={"message": "Unavailable"}))
        )
        client = await _authenticated(api)
        with self.assertRaises(GithubError) as ctx:
            await client.create_repository(make_app_config("demo"))
        self.assertEqual(ctx.exception.kind, ErrorKind.SERVER)
        self.assertEqual(ctx.exception.status_code, 503)

    async def test_pages_enabled_in_background_after_creation(self):
        api = (
            MockApi()
            .add("GET", "/repos/octo/demo", httpx.Response(404, json={}))
            .add("POST", "/user/repos", httpx.Response(201, json=github_repo("demo")))
            .add("POST", "/repos/octo/demo/pages", httpx.Response(201, json={"html_url": "https://octo.github.io/demo", "status": None}))
            .add("GET", "/repos/octo/demo/pages", httpx.Response(200, json={"html_url": "https://octo.github.io/demo", "status": "built"}))
        )
        client = await _authenticated(api, auto_enable_pages=True, sleep=FakeSleep())
        recorder = EventRecorder()
        client.events.on_any(recorder)

        await client.create_repository(make_app_config("demo"))
        await asyncio.gather(*client._background_tasks)

        self.assertEqual(recorder.count("pages:ready"), 1)

    async def test_pages_conflict_reads_current_status(self):
        api = (
            MockApi()
            .add("POST", "/repos/octo/demo/pages", httpx.Response(409, json={"message": "already enabled"}))
            .add("GET", "/repos/octo/demo/pages", httpx.Response(200, json={"html_url": "https://octo.github.io/demo", "status": "built"}))
        )
        client = await _authenticated(api)

        status = await client.enable_pages("demo")
        self.assertTrue(status.is_built)

    async def test_pages_monitor_times_out(self):
        sleep = FakeSleep()
        api = MockApi().add("GET", "/repos/octo/demo/pages", httpx.Response(200, json={"status": "building"}))
        client = await _authenticated(api, sleep=sleep)
        recorder = EventRecorder()
        client.events.on_any(recorder)

        status = await client.monitor_pages("demo", max_checks=3, interval=30)

        self.assertFalse(status.is_built)
        self.assertEqual(sleep.calls, [30, 30, 30])
        self.assertEqual(recorder.count("pages:timeout"), 1)

    async def test_delete_missing_repository(self):
        api = MockApi().add("DELETE", "/repos/octo/demo", httpx.Response(404, json={}))
        client = await _authenticated(api)
        with self.assertRaises(GithubError) as ctx:
            await client.delete_repository("demo")
        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_FOUND)


class TestContents(unittest.IsolatedAsyncioTestCase):
    async def test_author_email_rejection_is_not_retryable(self):
        api = MockApi().add(
            "PUT",
            "/repos/octo/demo/contents/config.xml",
            httpx.Response(422, json={"message": "Invalid email for author"}),
        )
        client = await _authenticated(api)

        with self.assertRaises(GithubError) as ctx:
            await client.put_file_content("octo/demo", "config.xml", "eA==", "Add config.xml", "A", "bad")
        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_AUTHOR_EMAIL)
        self.assertFalse(ctx.exception.retryable)

    async def test_file_sha_of_missing_file_is_none(self):
        api = MockApi().add("GET", "/repos/octo/demo/contents/www/index.html", httpx.Response(404, json={}))
        client = await _authenticated(api)
        self.assertIsNone(await client.get_file_sha("octo/demo", "www/index.html"))
