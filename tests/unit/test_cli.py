import argparse
import sys
from pathlib import Path
import unittest

from rich.console import Console

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from daysim.bootstrap import create_engine_services
from daysim.config import EngineSettings
from daysim.domain.models.daily import DailyRunStage
from daysim.presentation.cli import DEFAULT_ALLOCATION, autoplay_day, parse_allocation, run


class CliTests(unittest.TestCase):
    def test_parse_allocation(self) -> None:
        self.assertEqual(DEFAULT_ALLOCATION, parse_allocation(None))
        self.assertEqual({"study": 60, "fun": 40}, parse_allocation("study=60, fun=40"))
        with self.assertRaises(argparse.ArgumentTypeError):
            parse_allocation("study")

    def test_inmemory_backend_without_database_url(self) -> None:
        services = create_engine_services(EngineSettings())
        self.assertEqual("memory", services.backend)

    def test_autoplay_completes_the_day(self) -> None:
        services = create_engine_services(EngineSettings())
        notes = autoplay_day(services, "u1", 1, dict(DEFAULT_ALLOCATION))

        self.assertTrue(notes)
        self.assertEqual(DailyRunStage.COMPLETE, services.daily_runs.current_stage("u1", 1))
        instances = services.arcs.arc_repo.list_instances("u1")
        self.assertEqual(1, len(instances))

    def test_run_renders_the_requested_day(self) -> None:
        console = Console(record=True, width=140)
        self.assertEqual(0, run(["--user", "u1", "--day", "2", "--simulate", "1"], console=console))
        output = console.export_text()
        self.assertIn("Day 2 - u1", output)
        self.assertIn("Arcs", output)
        self.assertIn("Alignment", output)


if __name__ == "__main__":
    unittest.main()
