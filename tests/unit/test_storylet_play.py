import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from daysim.application.errors import ContentIntegrityError
from daysim.application.services.seed_policy import hash_to_unit_float
from daysim.application.services.storylet_play import resolve_choice
from daysim.application.services.storylet_validation import coerce_storylet_row
from daysim.domain.models.resources import ResourceSnapshot
from daysim.infrastructure.inmemory.sample_content import SAMPLE_STORYLET_ROWS


def _sample(storylet_id: str):
    row = next(row for row in SAMPLE_STORYLET_ROWS if row["id"] == storylet_id)
    return coerce_storylet_row(row)


class StoryletPlayTests(unittest.TestCase):
    def test_single_outcome_applies_resources_and_vectors(self) -> None:
        resolution = resolve_choice("u1", 1, _sample("s-orientation"), "listen", ResourceSnapshot(stress=10), {"focus": 99})
        self.assertIsNone(resolution.outcome_id)
        self.assertEqual("You catch every word and most of the jokes.", resolution.text)
        self.assertEqual(8, resolution.snapshot.stress)
        self.assertEqual({"stress": -2}, resolution.applied)
        self.assertEqual({"focus": 100}, resolution.vectors)

    def test_resource_deltas_use_canonical_keys(self) -> None:
        resolution = resolve_choice("u1", 5, _sample("s-library-shift"), "stay", ResourceSnapshot(cash_on_hand=5), {})
        self.assertEqual(90, resolution.snapshot.energy)
        self.assertEqual(20, resolution.snapshot.cash_on_hand)

    def test_check_choice_picks_success_or_failure_from_roll(self) -> None:
        storylet = _sample("s-problem-set")
        snapshot = ResourceSnapshot(energy=50, stress=20)
        resolution = resolve_choice("u1", 6, storylet, "grind", snapshot, {}, {"focus": 5}, "push")

        # 0.5 + 5 * 0.03 + 5 * 0.002 + 2 * 0.003 + 0.1
        expected_chance = 0.766
        self.assertAlmostEqual(expected_chance, resolution.check_chance)
        roll = hash_to_unit_float("u1:6:s-problem-set:grind:focus_check")
        self.assertEqual(roll < expected_chance, resolution.check_success)
        self.assertEqual("success" if roll < expected_chance else "failure", resolution.outcome_id)

    def test_weighted_choice_is_repeatable(self) -> None:
        storylet = _sample("s-open-mic")
        first = resolve_choice("u1", 3, storylet, "perform", ResourceSnapshot(), {"social": 40})
        second = resolve_choice("u1", 3, storylet, "perform", ResourceSnapshot(), {"social": 40})
        self.assertIn(first.outcome_id, {"cheers", "crickets"})
        self.assertEqual(first.outcome_id, second.outcome_id)
        self.assertIsNone(first.check_chance)

    def test_unknown_choice_raises(self) -> None:
        with self.assertRaises(ContentIntegrityError):
            resolve_choice("u1", 1, _sample("s-orientation"), "dance", ResourceSnapshot(), {})


if __name__ == "__main__":
    unittest.main()
