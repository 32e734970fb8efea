import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from daysim.application.services.alignment_ledger import AlignmentLedger, plan_alignment_delta
from daysim.application.services.event_bus import EventBus
from daysim.domain.events import AlignmentShifted
from daysim.domain.models.alignment import AlignmentSource
from daysim.infrastructure.inmemory.repos import InMemoryAlignmentRepository


class PlanAlignmentDeltaTests(unittest.TestCase):
    def test_clamps_to_three_per_call(self) -> None:
        self.assertEqual(3, plan_alignment_delta(7, 0))
        self.assertEqual(-3, plan_alignment_delta(-9, 0))

    def test_positive_gain_is_capped_by_what_is_left_today(self) -> None:
        self.assertEqual(1, plan_alignment_delta(2, 2))
        self.assertEqual(0, plan_alignment_delta(1, 3))

    def test_losses_are_never_capped(self) -> None:
        self.assertEqual(-2, plan_alignment_delta(-2, 3))


class AlignmentLedgerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.repo = InMemoryAlignmentRepository()
        self.bus = EventBus()
        self.shifts = []
        self.bus.subscribe(AlignmentShifted, self.shifts.append)
        self.ledger = AlignmentLedger(self.repo, self.bus)

    def test_daily_positive_gain_never_exceeds_three(self) -> None:
        for index in range(5):
            self.ledger.apply_alignment_delta("u1", 4, "templar_remnant", 2, "initiative", f"init-{index}")

        positive = sum(event.delta for event in self.repo.list_events("u1", 4, "templar_remnant") if event.delta > 0)
        self.assertEqual(3, positive)
        self.assertEqual(3, self.ledger.scores("u1")["templar_remnant"])
        self.assertEqual([2, 1], [event.delta for event in self.repo.events])

    def test_cap_resets_next_day_and_losses_still_apply(self) -> None:
        self.ledger.apply_alignment_delta("u1", 1, "neo_assyrian", 3, AlignmentSource.DIRECTIVE, "d-1")
        self.ledger.apply_alignment_delta("u1", 1, "neo_assyrian", -2, AlignmentSource.DIRECTIVE, "d-2")
        self.ledger.apply_alignment_delta("u1", 2, "neo_assyrian", 3, AlignmentSource.DIRECTIVE, "d-3")
        self.assertEqual(4, self.ledger.scores("u1")["neo_assyrian"])

    def test_duplicate_source_ref_is_ignored(self) -> None:
        first = self.ledger.apply_alignment_delta("u1", 1, "bormann_network", 1, "arc_choice", "inst:step_0")
        second = self.ledger.apply_alignment_delta("u1", 1, "bormann_network", 1, "arc_choice", "inst:step_0")
        self.assertIsNotNone(first)
        self.assertIsNone(second)
        self.assertTrue(self.ledger.has_alignment_event("u1", "arc_choice", "inst:step_0"))
        self.assertEqual(1, len(self.repo.events))

    def test_zero_delta_is_a_no_op(self) -> None:
        self.assertIsNone(self.ledger.apply_alignment_delta("u1", 1, "bormann_network", 0, "initiative"))
        self.assertEqual([], self.repo.list_for_user("u1"))
        self.assertEqual([], self.shifts)

    def test_unknown_faction_raises(self) -> None:
        with self.assertRaises(ValueError):
            self.ledger.apply_alignment_delta("u1", 1, "illuminati", 1, "initiative")

    def test_arc_choice_maps_option_key_to_faction(self) -> None:
        event = self.ledger.apply_arc_choice("u1", 3, "log_it", "inst-1:step_0")
        self.assertEqual("dynastic_consortium", event.faction_key)
        self.assertEqual(2, event.delta)
        self.assertEqual(AlignmentSource.ARC_CHOICE, event.source)
        self.assertIsNone(self.ledger.apply_arc_choice("u1", 3, "talk", "inst-2:roommate_1"))
        self.assertEqual(1, len(self.shifts))
        self.assertEqual(2, self.shifts[0].score_after)


if __name__ == "__main__":
    unittest.main()
