import asyncio
import json
import unittest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import httpx

from app_generator.database.store import MemoryKeyValueStore
from app_generator.entities.build_record import BuildRecord, BuildRecordPatch, BuildStatus
from app_generator.entities.codemagic import RemoteBuildStatus
from app_generator.repositories.build_history import BuildHistoryRepository
from app_generator.services.build_status_manager import BuildStatusManager, map_codemagic_status
from app_generator.services.codemagic import CodemagicClient
from app_generator.services.exceptions import CodemagicError, ErrorKind
from app_generator.utils.datetime import utc_now

from support import EventRecorder, FakeSleep, MockApi


def _codemagic(statuses=None):
    client = MagicMock()
    client.is_authenticated = True
    client.get_build_status = AsyncMock(
        side_effect=[RemoteBuildStatus(build_id="b1", status=status) for status in statuses or []]
    )
    client.get_build_artifacts = AsyncMock(return_value=[])
    return client


class TestStatusMapping(unittest.TestCase):
    def test_known_values_map_case_insensitively(self):
        self.assertEqual(map_codemagic_status("Building"), BuildStatus.BUILDING)
        self.assertEqual(map_codemagic_status("PREPARING"), BuildStatus.BUILDING)
        self.assertEqual(map_codemagic_status("finished"), BuildStatus.SUCCESS)
        self.assertEqual(map_codemagic_status("skipped"), BuildStatus.CANCELLED)
        self.assertEqual(map_codemagic_status("timeout"), BuildStatus.TIMEOUT)

    def test_every_input_maps_to_a_local_status(self):
        for value in ["", "archived", None, 42, "queued", "failed", "  success  "]:
            self.assertIsInstance(map_codemagic_status(value), BuildStatus)
        self.assertEqual(map_codemagic_status("archived"), BuildStatus.QUEUED)
        self.assertEqual(map_codemagic_status(None), BuildStatus.QUEUED)


class TestBuildHistory(unittest.TestCase):
    def setUp(self):
        self.store = MemoryKeyValueStore()
        self.manager = BuildStatusManager(_codemagic(), self.store)
        self.recorder = EventRecorder()
        self.manager.events.on_any(self.recorder)

    def test_save_build_merges_only_set_fields(self):
        self.manager.save_build(BuildRecordPatch(build_id="b1", app_name="demo", branch="main"))
        self.manager.save_build({"buildId": "b1", "status": "building"})

        build = self.manager.get_build("b1")
        self.assertEqual(build.app_name, "demo")
        self.assertEqual(build.branch, "main")
        self.assertEqual(build.status, BuildStatus.BUILDING)
        self.assertEqual(build.id, "b1")
        self.assertEqual(len(self.manager.load_build_history()), 1)

    def test_new_builds_go_first(self):
        self.manager.save_build({"buildId": "b1"})
        self.manager.save_build({"buildId": "b2"})
        self.assertEqual([b.build_id for b in self.manager.load_build_history()], ["b2", "b1"])

    def test_save_without_build_id_emits_error(self):
        self.assertIsNone(self.manager.save_build({"appName": "demo"}))
        self.assertEqual(self.recorder.count("build:save:error"), 1)
        self.assertEqual(self.manager.load_build_history(), [])

    def test_history_is_capped_at_one_hundred_records(self):
        for index in range(105):
            self.manager.save_build({"buildId": f"b{index}"})

        history = self.manager.load_build_history()
        self.assertEqual(len(history), 100)
        self.assertEqual(history[0].build_id, "b104")
        self.assertIsNone(self.manager.get_build("b0"))

    def test_records_older_than_thirty_days_expire(self):
        now = utc_now()
        BuildHistoryRepository(self.store).save(
            [
                BuildRecord(build_id="fresh", timestamp=now - timedelta(days=29)),
                BuildRecord(build_id="old", timestamp=now - timedelta(days=31)),
            ]
        )

        self.assertEqual(self.manager.clean_expired_builds(), 1)
        self.assertEqual([b.build_id for b in self.manager.load_build_history()], ["fresh"])
        self.assertEqual(self.recorder.payloads("build:history:cleaned"), [{"removed": 1, "remaining": 1}])

    def test_expired_records_are_dropped_on_startup(self):
        BuildHistoryRepository(self.store).save(
            [BuildRecord(build_id="old", timestamp=utc_now() - timedelta(days=45))]
        )
        manager = BuildStatusManager(_codemagic(), self.store)
        self.assertEqual(manager.load_build_history(), [])

    def test_success_rate_is_rounded_percentage(self):
        for build_id, status in [("a", "success"), ("b", "success"), ("c", "failed")]:
            self.manager.save_build({"buildId": build_id, "status": status})

        stats = self.manager.get_build_stats()
        self.assertEqual(stats["total"], 3)
        self.assertEqual(stats["success"], 2)
        self.assertEqual(stats["failed"], 1)
        self.assertEqual(stats["successRate"], 67)

    def test_success_rate_of_empty_history_is_zero(self):
        self.assertEqual(self.manager.get_build_stats()["successRate"], 0)

    def test_export_then_import_restores_history(self):
        self.manager.save_build({"buildId": "b1", "appName": "demo", "status": "success"})
        exported = self.manager.export_build_history()
        self.manager.clear_build_history()
        self.assertEqual(self.manager.load_build_history(), [])

        self.assertTrue(self.manager.import_build_history(exported))
        self.assertEqual(self.manager.get_build("b1").status, BuildStatus.SUCCESS)

    def test_import_rejects_invalid_json(self):
        self.assertFalse(self.manager.import_build_history("not json"))
        self.assertFalse(self.manager.import_build_history(json.dumps({"builds": "nope"})))

    def test_builds_by_app(self):
        self.manager.save_build({"buildId": "b1", "appName": "one"})
        self.manager.save_build({"buildId": "b2", "appName": "two"})
        self.assertEqual([b.build_id for b in self.manager.get_builds_by_app("two")], ["b2"])


class TestStatusRefresh(unittest.IsolatedAsyncioTestCase):
    def _manager(self, codemagic, **kwargs):
        manager = BuildStatusManager(codemagic, MemoryKeyValueStore(), **kwargs)
        recorder = EventRecorder()
        manager.events.on_any(recorder)
        return manager, recorder

    async def test_terminal_build_is_returned_without_remote_call(self):
        codemagic = _codemagic(["building"])
        manager, _ = self._manager(codemagic)
        manager.save_build({"buildId": "b1", "status": "success"})

        build = await manager.update_build_status("b1")

        self.assertEqual(build.status, BuildStatus.SUCCESS)
        codemagic.get_build_status.assert_not_awaited()

    async def test_force_refreshes_terminal_build(self):
        codemagic = _codemagic(["failed"])
        manager, recorder = self._manager(codemagic)
        manager.save_build({"buildId": "b1", "status": "success"})

        build = await manager.update_build_status("b1", force=True)

        self.assertEqual(build.status, BuildStatus.FAILED)
        self.assertEqual(recorder.count("build:completed"), 0)

    async def test_status_never_moves_backwards(self):
        manager, _ = self._manager(_codemagic(["queued"]))
        manager.save_build({"buildId": "b1", "status": "building"})

        build = await manager.update_build_status("b1")
        self.assertEqual(build.status, BuildStatus.BUILDING)

    async def test_completion_is_emitted_once_with_artifacts(self):
        codemagic = _codemagic(["success", "success"])
        manager, recorder = self._manager(codemagic)
        manager.save_build({"buildId": "b1", "status": "building"})

        await manager.update_build_status("b1")
        await manager.update_build_status("b1", force=True)

        self.assertEqual(recorder.count("build:completed"), 1)
        codemagic.get_build_artifacts.assert_awaited()

    async def test_overlapping_refreshes_complete_once(self):
        release = asyncio.Event()

        async def remote_status(build_id):
            await release.wait()
            return RemoteBuildStatus(build_id=build_id, status="finished")

        codemagic = _codemagic()
        codemagic.get_build_status = AsyncMock(side_effect=remote_status)
        manager, recorder = self._manager(codemagic)
        manager.save_build({"buildId": "b1", "status": "building"})

        tick = asyncio.create_task(manager.update_build_status("b1"))
        refresh = asyncio.create_task(manager.update_build_status("b1", force=True))
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(tick, refresh)

        self.assertEqual([build.status for build in results], [BuildStatus.SUCCESS, BuildStatus.SUCCESS])
        self.assertEqual(codemagic.get_build_status.await_count, 2)
        self.assertEqual(recorder.count("build:completed"), 1)

    async def test_remote_error_leaves_record_unchanged(self):
        codemagic = _codemagic()
        codemagic.get_build_status = AsyncMock(side_effect=CodemagicError("boom", ErrorKind.SERVER))
        manager, recorder = self._manager(codemagic)
        manager.save_build({"buildId": "b1", "status": "building"})

        self.assertIsNone(await manager.update_build_status("b1"))
        self.assertEqual(manager.get_build("b1").status, BuildStatus.BUILDING)
        self.assertEqual(recorder.count("build:status:error"), 1)

    async def test_malformed_remote_reply_is_reported_as_status_error(self):
        api = MockApi()
        api.add("GET", "/builds/b1", httpx.Response(200, text="<html>gateway</html>"))
        api.add("GET", "/apps", httpx.Response(200, json={"applications": []}))
        codemagic = CodemagicClient(transport=api.transport)
        await codemagic.authenticate("x" * 43)
        manager, recorder = self._manager(codemagic)
        manager.save_build({"buildId": "b1", "status": "building"})

        self.assertIsNone(await manager.update_build_status("b1"))

        self.assertEqual(manager.get_build("b1").status, BuildStatus.BUILDING)
        self.assertEqual(recorder.payloads("build:status:error")[0]["kind"], "server")

    async def test_unauthenticated_client_skips_refresh(self):
        codemagic = _codemagic(["success"])
        codemagic.is_authenticated = False
        manager, _ = self._manager(codemagic)
        manager.save_build({"buildId": "b1"})

        self.assertIsNone(await manager.update_build_status("b1"))
        codemagic.get_build_status.assert_not_awaited()


class TestPolling(unittest.IsolatedAsyncioTestCase):
    async def test_start_polling_is_idempotent(self):
        never = asyncio.Event()

        async def blocking_sleep(_):
            await never.wait()

        manager = BuildStatusManager(_codemagic(), MemoryKeyValueStore(), sleep=blocking_sleep)
        recorder = EventRecorder()
        manager.events.on_any(recorder)

        self.assertTrue(manager.start_polling("b1"))
        self.assertFalse(manager.start_polling("b1"))
        self.assertEqual(manager.active_polling, ["b1"])
        self.assertEqual(recorder.count("build:polling:started"), 1)

        self.assertTrue(manager.stop_polling("b1"))
        self.assertFalse(manager.stop_polling("b1"))
        self.assertEqual(manager.active_polling, [])

    async def test_polling_stops_on_terminal_status(self):
        sleep = FakeSleep()
        codemagic = _codemagic(["building", "success"])
        manager = BuildStatusManager(codemagic, MemoryKeyValueStore(), poll_interval=45, sleep=sleep)
        manager.save_build({"buildId": "b1"})

        manager.start_polling("b1")
        task = manager._active_polling["b1"]
        await asyncio.wait_for(task, timeout=5)

        self.assertEqual(sleep.calls, [45, 45])
        self.assertFalse(manager.is_polling("b1"))
        self.assertEqual(manager.get_build("b1").status, BuildStatus.SUCCESS)

    async def test_polling_gives_up_after_max_attempts(self):
        sleep = FakeSleep()
        codemagic = _codemagic(["building"] * 3)
        manager = BuildStatusManager(codemagic, MemoryKeyValueStore(), max_poll_attempts=3, sleep=sleep)
        recorder = EventRecorder()
        manager.events.on_any(recorder)
        manager.save_build({"buildId": "b1"})

        manager.start_polling("b1")
        await asyncio.wait_for(manager._active_polling["b1"], timeout=5)

        self.assertEqual(codemagic.get_build_status.await_count, 3)
        self.assertEqual(recorder.payloads("build:polling:exhausted"), [{"buildId": "b1", "attempts": 3}])
        self.assertFalse(manager.is_polling("b1"))

    async def test_resume_polls_only_unfinished_builds(self):
        never = asyncio.Event()

        async def blocking_sleep(_):
            await never.wait()

        manager = BuildStatusManager(_codemagic(), MemoryKeyValueStore(), sleep=blocking_sleep)
        manager.save_build({"buildId": "done", "status": "success"})
        manager.save_build({"buildId": "running", "status": "building"})

        self.assertEqual(manager.start_polling_active_builds(), 1)
        self.assertEqual(manager.active_polling, ["running"])
        manager.stop_all_polling()
        self.assertEqual(manager.active_polling, [])
