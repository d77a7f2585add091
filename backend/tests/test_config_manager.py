import json
import tempfile
import unittest
from pathlib import Path

from app_generator.database.store import MemoryKeyValueStore
from app_generator.services.config_manager import (
    ConfigManager,
    compare_versions,
    deep_merge,
    get_nested,
    set_nested,
)
from app_generator.services.exceptions import NotFoundError, ValidationError

from support import EventRecorder


class TestHelpers(unittest.TestCase):
    def test_compare_versions(self):
        self.assertEqual(compare_versions("1.0.0", "1.0.0"), 0)
        self.assertEqual(compare_versions("0.9", "1.0.0"), -1)
        self.assertEqual(compare_versions("1.10.0", "1.9.9"), 1)
        self.assertEqual(compare_versions("1.0", "1.0.0"), 0)

    def test_deep_merge_keeps_nested_defaults(self):
        merged = deep_merge({"a": {"b": 1, "c": 2}, "d": [1]}, {"a": {"b": 5}, "d": [2, 3]})
        self.assertEqual(merged, {"a": {"b": 5, "c": 2}, "d": [2, 3]})

    def test_dotted_paths(self):
        doc = {"settings": {"packagePrefix": "com.test"}}
        self.assertEqual(get_nested(doc, "settings.packagePrefix"), "com.test")
        self.assertEqual(get_nested(doc, "settings.missing.deeper", "x"), "x")

        set_nested(doc, "ui.preferences.theme", "dark")
        self.assertEqual(doc["ui"], {"preferences": {"theme": "dark"}})


class TestConfigManager(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.path = Path(self.tmp.name) / "config.json"
        self.store = MemoryKeyValueStore()
        self.manager = ConfigManager(self.store, file_path=str(self.path))
        self.recorder = EventRecorder()
        self.manager.events.on_any(self.recorder)

    def test_missing_file_starts_from_defaults(self):
        config = self.manager.load_default_configuration()

        self.assertEqual(config["version"], "1.0.0")
        self.assertEqual(config["settings"]["androidMinSdk"], 24)
        self.assertEqual(config["authentication"]["github"]["token"], "")
        self.assertIsNone(self.manager.current_path)
        self.assertEqual(self.recorder.payloads("config:loaded")[0]["isNew"], True)

    def test_legacy_document_is_migrated(self):
        self.path.write_text(
            json.dumps(
                {
                    "githubToken": "ghp_legacy",
                    "githubUsername": "octo",
                    "packagePrefix": "com.legacy",
                    "enableBuildPreparation": False,
                }
            ),
            encoding="utf-8",
        )

        config = self.manager.load_default_configuration()

        self.assertEqual(config["version"], "1.0.0")
        self.assertEqual(config["authentication"]["github"]["token"], "ghp_legacy")
        self.assertEqual(config["authentication"]["github"]["username"], "octo")
        self.assertEqual(config["settings"]["packagePrefix"], "com.legacy")
        self.assertEqual(config["settings"]["authorName"], "Cordova Developer")
        self.assertFalse(config["settings"]["enableBuildPreparation"])
        self.assertEqual(config["metadata"]["migrated"]["from"], "0.0.0")
        self.assertEqual(self.manager.current_path, str(self.path))
        self.assertEqual(self.manager.get_recent_files()[0]["path"], str(self.path))

    def test_partial_current_document_is_merged_with_defaults(self):
        config = self.manager.load_from_data({"version": "1.0.0", "settings": {"authorName": "Ada"}})

        self.assertEqual(config["settings"]["authorName"], "Ada")
        self.assertEqual(config["settings"]["packagePrefix"], "com.yourcompany")
        self.assertIn("preferences", config["ui"])
        self.assertNotIn("migrated", config["metadata"])

    def test_invalid_documents_are_rejected(self):
        with self.assertRaises(ValidationError):
            self.manager.load_from_data(["not", "an", "object"])
        with self.assertRaises(ValidationError) as ctx:
            self.manager.load_from_data({"version": "1.0.0", "settings": None})

        self.assertIn("Missing required configuration field: settings", ctx.exception.errors)
        self.assertEqual(self.recorder.count("config:error"), 2)

    def test_unreadable_file_falls_back_to_defaults(self):
        self.path.write_text("{broken", encoding="utf-8")
        config = self.manager.load_default_configuration()
        self.assertEqual(config["settings"]["packagePrefix"], "com.yourcompany")

    def test_update_config_marks_dirty_and_emits(self):
        self.manager.load_default_configuration()
        self.manager.update_config("settings.packagePrefix", "com.example")

        self.assertTrue(self.manager.is_dirty)
        self.assertEqual(self.manager.get_value("settings.packagePrefix"), "com.example")
        self.assertEqual(
            self.recorder.payloads("config:changed"),
            [{"path": "settings.packagePrefix", "value": "com.example"}],
        )

    def test_returned_config_is_a_copy(self):
        config = self.manager.get_config()
        config["settings"]["packagePrefix"] = "com.mutated"
        self.assertNotEqual(self.manager.get_value("settings.packagePrefix"), "com.mutated")

    def test_save_without_sensitive_values(self):
        self.manager.load_default_configuration()
        self.manager.update_many({"authentication.github.token": "ghp_secret", "settings.authorName": "Ada"})

        self.manager.save_configuration(include_sensitive=False)

        saved = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertEqual(saved["authentication"]["github"]["token"], "")
        self.assertEqual(saved["settings"]["authorName"], "Ada")
        self.assertEqual(saved["metadata"]["savedBy"], "Cordova App Generator")
        self.assertFalse(self.manager.is_dirty)
        # The in-memory token is kept
        self.assertEqual(self.manager.get_value("authentication.github.token"), "ghp_secret")

    def test_second_save_creates_backup(self):
        self.manager.load_default_configuration()
        self.manager.save_configuration()
        self.manager.save_configuration()

        backups = list(Path(self.tmp.name).glob("config-backup-*.json"))
        self.assertEqual(len(backups), 1)

    def test_export_hides_tokens_by_default(self):
        self.manager.update_config("authentication.codemagic.token", "cm-secret")
        exported = json.loads(self.manager.export_configuration())
        self.assertEqual(exported["authentication"]["codemagic"]["token"], "")
        exported = json.loads(self.manager.export_configuration(include_sensitive=True))
        self.assertEqual(exported["authentication"]["codemagic"]["token"], "cm-secret")

    def test_recent_files_are_capped(self):
        for index in range(7):
            self.manager.add_to_recent_files(f"/tmp/config-{index}.json")
        self.manager.add_to_recent_files("/tmp/config-4.json")

        paths = [entry["path"] for entry in self.manager.get_recent_files()]
        self.assertEqual(
            paths,
            ["/tmp/config-4.json", "/tmp/config-6.json", "/tmp/config-5.json", "/tmp/config-3.json", "/tmp/config-2.json"],
        )

    def test_load_preset(self):
        config = self.manager.load_preset("team")

        self.assertEqual(config["settings"]["packagePrefix"], "com.team")
        self.assertTrue(config["settings"]["enableCodemagicIntegration"])
        self.assertTrue(self.manager.is_dirty)
        self.assertEqual(len(self.manager.get_configuration_presets()), 3)

    def test_unknown_preset(self):
        with self.assertRaises(NotFoundError):
            self.manager.load_preset("enterprise")
