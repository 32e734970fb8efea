import os
import sys
from pathlib import Path
import unittest
from unittest import mock

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from daysim.config import DEFAULT_CONTENT_CACHE_DIR, EngineSettings


class EngineSettingsTests(unittest.TestCase):
    def test_defaults_when_environment_is_empty(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = EngineSettings.from_env()
        self.assertIsNone(settings.database_url)
        self.assertIsNone(settings.content_base_url)
        self.assertEqual(2, settings.progression_slots)
        self.assertEqual(2, settings.hesitation_divisor)
        self.assertEqual(3, settings.hesitation_max_bump)
        self.assertFalse(settings.resource_trace)
        self.assertEqual(DEFAULT_CONTENT_CACHE_DIR, settings.content_cache_dir)
        self.assertEqual("WARNING", settings.log_level)

    def test_reads_overrides_and_clamps(self) -> None:
        env = {
            "DAYSIM_DATABASE_URL": "sqlite:///tmp.db",
            "DAYSIM_PROGRESSION_SLOTS": "-4",
            "DAYSIM_HESITATION_DIVISOR": "0",
            "DAYSIM_RESOURCE_TRACE": "yes",
            "DAYSIM_CONTENT_BASE_URL": "https://content.invalid",
            "DAYSIM_CONTENT_CACHE_TTL_S": "30",
            "DAYSIM_SEASON_INDEX": "2",
            "DAYSIM_LOG_LEVEL": " debug ",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = EngineSettings.from_env()
        self.assertEqual("sqlite:///tmp.db", settings.database_url)
        self.assertEqual(0, settings.progression_slots)
        self.assertEqual(1, settings.hesitation_divisor)
        self.assertTrue(settings.resource_trace)
        self.assertEqual("https://content.invalid", settings.content_base_url)
        self.assertEqual(30, settings.content_cache_ttl_s)
        self.assertEqual(2, settings.season_index)
        self.assertEqual("DEBUG", settings.log_level)


if __name__ == "__main__":
    unittest.main()
