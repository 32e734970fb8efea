import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from daysim.application.services.allocation_effects import (
    allocation_to_vector_deltas,
    compute_allocation_effect,
    normalize_allocation,
)


class AllocationEffectsTests(unittest.TestCase):
    def test_normalize_drops_unknown_and_negative_values(self) -> None:
        normalized = normalize_allocation({"study": 40, "work": -5, "naps": 30, "fun": True, "health": 12.7})
        self.assertEqual({"study": 40, "work": 0, "social": 0, "health": 12, "fun": 0}, normalized)

    def test_vector_thresholds(self) -> None:
        deltas = allocation_to_vector_deltas({"study": 40, "work": 39, "social": 30, "health": 25, "fun": 15})
        self.assertEqual({"focus": 1, "social": 1, "stability": 1}, deltas)
        self.assertEqual({}, allocation_to_vector_deltas({"study": 10, "work": 10, "social": 10, "health": 10, "fun": 10}))

    def test_steady_day_energy_and_stress(self) -> None:
        effect = compute_allocation_effect({"study": 40, "work": 20, "social": 10, "health": 20, "fun": 10}, "steady")
        # stress 3.5 * 0.8, energy -9.5 * 1.1
        self.assertEqual(3, effect.stress_delta)
        self.assertEqual(-10, effect.energy_delta)

    def test_hours_credit_the_stocks(self) -> None:
        effect = compute_allocation_effect({"study": 40, "work": 45, "social": 20, "health": 39, "fun": 0})
        self.assertEqual((4, 4, 2, 1), (effect.knowledge_gain, effect.cash_gain, effect.social_leverage_gain, effect.resilience_gain))
        resources = effect.to_resources()
        self.assertEqual(4, resources["cashOnHand"])
        self.assertEqual(effect.energy_delta, resources["energy"])

    def test_rest_day_recovers(self) -> None:
        effect = compute_allocation_effect({"study": 0, "work": 0, "social": 0, "health": 60, "fun": 40}, "recover")
        self.assertGreater(effect.energy_delta, 0)
        self.assertLess(effect.stress_delta, 0)

    def test_skills_soften_costs(self) -> None:
        allocation = {"study": 60, "work": 40, "social": 0, "health": 0, "fun": 0}
        untrained = compute_allocation_effect(allocation)
        trained = compute_allocation_effect(allocation, skills={"focus": 5, "memory": 5, "grit": 5})
        self.assertLess(trained.stress_delta, untrained.stress_delta)
        self.assertGreater(trained.energy_delta, untrained.energy_delta)


if __name__ == "__main__":
    unittest.main()
