import unittest
from datetime import timedelta
from urllib.parse import parse_qs

import httpx

from app_generator.services.amazon_appstore import AmazonAppstoreClient
from app_generator.services.exceptions import AppstoreError, ErrorKind
from app_generator.utils.datetime import utc_now

from support import MockApi, make_app_config


def _token(access="access-1", refresh="refresh-1", expires_in=3600):
    body = {"access_token": access, "expires_in": expires_in}
    if refresh:
        body["refresh_token"] = refresh
    return httpx.Response(200, json=body)


def _form(request: httpx.Request) -> dict:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


class TestAmazonAppstoreClient(unittest.IsolatedAsyncioTestCase):
    async def test_authenticate_uses_client_credentials(self):
        api = MockApi().add("POST", r".*/auth/token", _token())
        client = AmazonAppstoreClient(transport=api.transport)

        result = await client.authenticate("client", "secret", "dev-1")

        self.assertEqual(result, {"success": True, "developerId": "dev-1"})
        self.assertTrue(client.is_authenticated)
        request = api.requests[0]
        self.assertEqual(_form(request)["grant_type"], "client_credentials")
        self.assertTrue(request.headers["Authorization"].startswith("Basic "))

    async def test_rejected_credentials(self):
        api = MockApi().add("POST", r".*/auth/token", httpx.Response(401, json={"error": "invalid_client"}))
        client = AmazonAppstoreClient(transport=api.transport)

        with self.assertRaises(AppstoreError) as ctx:
            await client.authenticate("client", "wrong", "dev-1")
        self.assertEqual(ctx.exception.kind, ErrorKind.AUTHENTICATION)
        self.assertFalse(client.is_authenticated)

    async def test_expiring_token_is_refreshed_before_call(self):
        api = (
            MockApi()
            .add("POST", r".*/auth/token", _token(), _token(access="access-2"))
            .add("GET", r".*/applications/app-1", httpx.Response(200, json={"status": "LIVE", "title": "Demo"}))
        )
        client = AmazonAppstoreClient(transport=api.transport)
        await client.authenticate("client", "secret", "dev-1")
        client.token_expiry = utc_now() + timedelta(seconds=30)

        status = await client.get_app_status("app-1")

        self.assertEqual(status.status, "LIVE")
        refresh = api.calls("POST", r".*/auth/token")[1]
        self.assertEqual(_form(refresh)["grant_type"], "refresh_token")
        self.assertEqual(_form(refresh)["refresh_token"], "refresh-1")
        self.assertEqual(api.calls("GET", r".*/applications/app-1")[0].headers["Authorization"], "Bearer access-2")

    async def test_fresh_token_is_not_refreshed(self):
        api = (
            MockApi()
            .add("POST", r".*/auth/token", _token())
            .add("GET", r".*/applications/app-1", httpx.Response(200, json={"status": "LIVE"}))
        )
        client = AmazonAppstoreClient(transport=api.transport)
        await client.authenticate("client", "secret", "dev-1")

        await client.get_app_status("app-1")
        self.assertEqual(len(api.calls("POST", r".*/auth/token")), 1)

    async def test_refresh_without_refresh_token_repeats_client_credentials(self):
        api = MockApi().add("POST", r".*/auth/token", _token(refresh=None), _token(access="access-2", refresh=None))
        client = AmazonAppstoreClient(transport=api.transport)
        await client.authenticate("client", "secret", "dev-1")

        await client.refresh_access_token()

        self.assertEqual(_form(api.requests[1])["grant_type"], "client_credentials")
        self.assertEqual(client.access_token, "access-2")

    async def test_refresh_requires_credentials(self):
        with self.assertRaises(AppstoreError):
            await AmazonAppstoreClient(transport=MockApi().transport).refresh_access_token()

    async def test_create_app_and_upload_apk(self):
        api = (
            MockApi()
            .add("POST", r".*/auth/token", _token())
            .add("POST", r".*/applications", httpx.Response(201, json={"id": "app-1", "status": "DRAFT"}))
            .add(
                "POST",
                r".*/applications/app-1/edits",
                httpx.Response(200, json={"editId": "edit-1", "uploadUrl": "https://upload.example.com/apk"}),
            )
            .add("PUT", "/apk", httpx.Response(200))
            .add("POST", r".*/applications/app-1/edits/edit-1/commit", httpx.Response(200, json={"status": "COMMITTED"}))
        )
        client = AmazonAppstoreClient(transport=api.transport)
        await client.authenticate("client", "secret", "dev-1")

        app = await client.create_app(make_app_config("demo"))
        upload = await client.upload_apk(app.app_id, b"PK\x03\x04", "demo.apk")

        self.assertEqual(app.package_name, "com.test.demo")
        self.assertEqual(upload.edit_id, "edit-1")
        self.assertEqual(upload.status, "COMMITTED")
        put = api.calls("PUT", "/apk")[0]
        self.assertEqual(put.content, b"PK\x03\x04")
        self.assertEqual(put.headers["Content-Type"], "application/vnd.android.package-archive")

    async def test_sign_out(self):
        api = MockApi().add("POST", r".*/auth/token", _token())
        client = AmazonAppstoreClient(transport=api.transport)
        await client.authenticate("client", "secret", "dev-1")

        client.sign_out()
        self.assertFalse(client.auth_status()["authenticated"])
        self.assertIsNone(client.access_token)

    async def test_status_and_submission(self):
        api = (
            MockApi()
            .add("POST", r".*/auth/token", _token())
            .add(
                "GET",
                r".*/applications/app-1",
                httpx.Response(200, json={"status": "LIVE", "title": "Demo", "currentVersion": "1.0.0"}),
            )
            .add("POST", r".*/applications/app-1/submit", httpx.Response(202, json={"id": "sub-1", "status": "SUBMITTED"}))
        )
        client = AmazonAppstoreClient(transport=api.transport)
        await client.authenticate("client", "secret", "dev-1")

        status = await client.get_app_status("app-1")
        submission = await client.submit_for_review("app-1")

        self.assertEqual((status.status, status.version), ("LIVE", "1.0.0"))
        self.assertEqual(submission.submission_id, "sub-1")
        body = api.calls("POST", r".*/submit")[0].content.decode()
        self.assertIn("Automated submission", body)

    async def test_submission_failure(self):
        api = (
            MockApi()
            .add("POST", r".*/auth/token", _token())
            .add("POST", r".*/applications/app-1/submit", httpx.Response(500, json={"message": "boom"}))
        )
        client = AmazonAppstoreClient(transport=api.transport)
        await client.authenticate("client", "secret", "dev-1")

        with self.assertRaises(AppstoreError) as ctx:
            await client.submit_for_review("app-1", "notes")
        self.assertEqual(ctx.exception.kind, ErrorKind.SERVER)
