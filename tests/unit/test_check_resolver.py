import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from daysim.application.services.check_resolver import MAX_CHANCE, MIN_CHANCE, resolve_check
from daysim.application.services.seed_policy import hash_to_unit_float
from daysim.domain.models.storylet import Check


class CheckResolverTests(unittest.TestCase):
    def test_contributions_sum_to_unclamped_chance(self) -> None:
        check = Check(
            id="focus_check",
            base_chance=0.4,
            skill_weights={"focus": 0.05, "grit": 0.02},
            energy_weight=0.01,
            stress_weight=-0.02,
            posture_bonus={"push": 0.1},
        )
        result = resolve_check(check, {"focus": 2, "grit": 1}, {"energy": 75, "stress": 39}, "push", "u:1:s:c:k")

        contributions = result.contributions
        self.assertAlmostEqual(0.4, contributions.base)
        self.assertAlmostEqual(0.1, contributions.skills["focus"])
        self.assertAlmostEqual(0.02, contributions.skills["grit"])
        self.assertEqual(0.0, contributions.skills["memory"])
        self.assertAlmostEqual(0.07, contributions.energy)
        self.assertAlmostEqual(-0.06, contributions.stress)
        self.assertAlmostEqual(0.1, contributions.posture)
        self.assertAlmostEqual(0.63, contributions.total())
        self.assertAlmostEqual(0.63, result.chance)

    def test_chance_is_clamped(self) -> None:
        high = resolve_check(Check(id="c", base_chance=1.0, posture_bonus={"push": 0.5}), {}, {}, "push", "s")
        low = resolve_check(Check(id="c", base_chance=0.0, stress_weight=-0.5), {}, {"stress": 90}, None, "s")
        self.assertEqual(MAX_CHANCE, high.chance)
        self.assertEqual(MIN_CHANCE, low.chance)

    def test_success_compares_roll_with_chance(self) -> None:
        seed = "player:2:s-problem-set:grind:focus_check"
        result = resolve_check(Check(id="focus_check", base_chance=0.5), {}, {}, None, seed)
        self.assertEqual(hash_to_unit_float(seed) < 0.5, result.success)

    def test_every_weighted_skill_contributes(self) -> None:
        check = Check(id="c", base_chance=0.5, skill_weights={"charm": 0.01, "focus": 0.02})
        result = resolve_check(check, {"charm": 10, "focus": 5}, {}, None, "s")
        self.assertAlmostEqual(0.1, result.contributions.skills["charm"])
        self.assertAlmostEqual(0.1, result.contributions.skills["focus"])
        self.assertAlmostEqual(0.7, result.chance)


if __name__ == "__main__":
    unittest.main()
