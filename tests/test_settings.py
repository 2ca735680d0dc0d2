import os
import sys
import unittest
import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import SettingsRepository


class SettingsRepositoryTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_settings.db"
        self.yaml_path = "test_settings.yaml"
        for p in (self.db_path, self.yaml_path):
            if os.path.exists(p):
                os.remove(p)
        self.settings = SettingsRepository(self.db_path, self.yaml_path)

    def tearDown(self) -> None:
        for p in (self.db_path, self.yaml_path):
            if os.path.exists(p):
                os.remove(p)

    def test_defaults(self) -> None:
        data = self.settings.all_settings()
        self.assertEqual(data["weight_unit"], "lbs")
        self.assertEqual(self.settings.get_int("import_batch_size", 0), 500)
        self.assertEqual(self.settings.get_float("deload_week_factor", 0), 0.9)
        self.assertTrue(self.settings.get_bool("game_enabled", False))
        self.assertEqual(self.settings.get_text("missing", "fallback"), "fallback")

    def test_setting_writes_yaml(self) -> None:
        self.settings.set_text("weight_unit", "kg")
        with open(self.yaml_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        self.assertEqual(data["weight_unit"], "kg")
        self.settings.set_bool("game_enabled", False)
        self.assertFalse(self.settings.get_bool("game_enabled", True))

    def test_invalid_values_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.settings.set_text("weight_unit", "stone")
        with self.assertRaises(ValueError):
            self.settings.set_float("deload_week_factor", 1.5)
        with self.assertRaises(ValueError):
            self.settings.set_float("weight_rounding", 0)
        self.assertEqual(self.settings.get_text("weight_unit", ""), "lbs")

    def test_yaml_edits_are_picked_up(self) -> None:
        with open(self.yaml_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        data["rest_timer_preset"] = 120
        with open(self.yaml_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f)
        stat = os.stat(self.yaml_path)
        os.utime(self.yaml_path, (stat.st_atime, stat.st_mtime + 10))
        self.assertEqual(self.settings.get_int("rest_timer_preset", 0), 120)

    def test_reopen_keeps_values(self) -> None:
        self.settings.set_int("import_batch_size", 50)
        reopened = SettingsRepository(self.db_path, self.yaml_path)
        self.assertEqual(reopened.get_int("import_batch_size", 0), 50)


if __name__ == "__main__":
    unittest.main()
