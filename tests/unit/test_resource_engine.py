import os
import sys
from pathlib import Path
import unittest
from unittest import mock

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from daysim.application.services.resource_engine import (
    apply_resource_delta_to_snapshot,
    clear_resource_trace,
    find_unaffordable_resource,
    get_resource_trace,
    merge_costs_and_rewards,
    normalize_resource_delta,
)
from daysim.domain.models.resources import ResourceDelta, ResourceSnapshot, compute_morale


class ResourceEngineTests(unittest.TestCase):
    def tearDown(self) -> None:
        clear_resource_trace()

    def test_legacy_aliases_fold_into_canonical_keys(self) -> None:
        normalized = normalize_resource_delta({"money": 5, "cashOnHand": 3, "study_progress": 2, "morale": 9, "luck": 1})
        self.assertEqual({"cashOnHand": 8, "knowledge": 2}, normalized)

    def test_percent_resources_clamp_and_others_do_not(self) -> None:
        snapshot = ResourceSnapshot(energy=95, stress=3, knowledge=1, cash_on_hand=2, physical_resilience=98)
        result = apply_resource_delta_to_snapshot(
            snapshot,
            {"energy": 20, "stress": -10, "health": 10, "knowledge": -5, "money": -7},
        )
        self.assertEqual(100, result.next.energy)
        self.assertEqual(0, result.next.stress)
        self.assertEqual(100, result.next.physical_resilience)
        self.assertEqual(-4, result.next.knowledge)
        self.assertEqual(-5, result.next.cash_on_hand)

    def test_applied_reports_pre_clamp_nonzero_values(self) -> None:
        result = apply_resource_delta_to_snapshot(ResourceSnapshot(energy=95), {"energy": 20, "stress": 0})
        self.assertEqual({"energy": 20}, result.applied)

    def test_morale_is_recomputed_from_energy_and_stress(self) -> None:
        result = apply_resource_delta_to_snapshot(ResourceSnapshot(energy=60, stress=20), {"stress": 30, "morale": 40})
        self.assertEqual(compute_morale(60, 50), result.next.morale)
        self.assertEqual(60, result.next.morale)
        self.assertEqual(100, ResourceSnapshot(energy=100, stress=0).morale)
        self.assertEqual(0, ResourceSnapshot(energy=0, stress=100).morale)

    def test_snapshot_round_trips_camel_case_keys(self) -> None:
        snapshot = ResourceSnapshot.from_mapping({"energy": 40, "cashOnHand": 12, "social_capital": 3, "morale": 1})
        payload = snapshot.to_dict()
        self.assertEqual(12, payload["cashOnHand"])
        self.assertEqual(3, payload["socialLeverage"])
        self.assertEqual(90, payload["morale"])

    def test_costs_are_debited_and_stress_costs_raise_stress(self) -> None:
        merged = merge_costs_and_rewards(
            ResourceDelta(resources={"energy": 10, "stress": -2, "cashOnHand": -3}, skill_points=1),
            ResourceDelta(resources={"knowledge": 2, "energy": 4}, skill_points=3, dispositions={"social": 1}),
        )
        self.assertEqual({"energy": -6, "stress": 2, "cashOnHand": -3, "knowledge": 2}, dict(merged.resources))
        self.assertEqual(2, merged.skill_points)
        self.assertEqual({"social": 1}, dict(merged.dispositions))

    def test_find_unaffordable_resource_ignores_stress(self) -> None:
        snapshot = ResourceSnapshot(energy=5, cash_on_hand=1)
        self.assertEqual("energy", find_unaffordable_resource(snapshot, ResourceDelta(resources={"energy": 10})))
        self.assertEqual("cashOnHand", find_unaffordable_resource(snapshot, ResourceDelta(resources={"money": 2})))
        self.assertIsNone(find_unaffordable_resource(snapshot, ResourceDelta(resources={"stress": 50, "energy": 5})))

    def test_trace_records_only_when_enabled(self) -> None:
        apply_resource_delta_to_snapshot(ResourceSnapshot(), {"energy": -5}, day_index=1, source="test")
        self.assertEqual([], get_resource_trace())

        with mock.patch.dict(os.environ, {"DAYSIM_RESOURCE_TRACE": "1"}):
            apply_resource_delta_to_snapshot(ResourceSnapshot(energy=3), {"energy": -5}, day_index=2, source="test")

        trace = get_resource_trace()
        self.assertEqual(1, len(trace))
        self.assertEqual({"energy": -5}, trace[0].requested)
        self.assertEqual({"energy": -3, "morale": -3}, trace[0].effective)


if __name__ == "__main__":
    unittest.main()
