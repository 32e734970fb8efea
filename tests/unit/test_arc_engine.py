import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from daysim.application.errors import ArcTransitionError
from daysim.application.services import arc_engine
from daysim.domain.models.arc import ArcInstanceState, ArcStep, OfferState
from daysim.domain.models.resources import ResourceDelta


def _step(step_key: str = "step_0", due: int = 0, expires: int = 2) -> ArcStep:
    return ArcStep(
        id=f"arc:{step_key}",
        arc_id="arc",
        step_key=step_key,
        order_index=0,
        title=step_key,
        due_offset_days=due,
        expires_after_days=expires,
    )


class ArcEngineTests(unittest.TestCase):
    def test_offer_tone_curve(self) -> None:
        self.assertEqual([0, 1, 2, 2, 3, 3], [arc_engine.compute_offer_tone(n) for n in range(6)])

    def test_offer_expires_after_its_last_day(self) -> None:
        offer = arc_engine.new_offer("o1", "u1", "arc", current_day=2)
        self.assertEqual(4, offer.expires_on_day)
        self.assertFalse(arc_engine.should_offer_expire(4, offer))
        self.assertTrue(arc_engine.should_offer_expire(5, offer))

    def test_show_offer_counts_once_per_day(self) -> None:
        offer = arc_engine.new_offer("o1", "u1", "arc", current_day=1)
        self.assertIs(offer, arc_engine.show_offer(offer, 1))

        shown = arc_engine.show_offer(offer, 2)
        self.assertEqual(1, shown.times_shown)
        self.assertEqual(1, shown.tone_level)
        self.assertIs(shown, arc_engine.show_offer(shown, 2))

        again = arc_engine.show_offer(shown, 3)
        self.assertEqual(2, again.times_shown)
        self.assertEqual(2, again.tone_level)

    def test_terminal_offer_rejects_transitions(self) -> None:
        accepted = arc_engine.accept_offer(arc_engine.new_offer("o1", "u1", "arc", 1))
        self.assertEqual(OfferState.ACCEPTED, accepted.state)
        with self.assertRaises(ArcTransitionError):
            arc_engine.dismiss_offer(accepted)
        with self.assertRaises(ArcTransitionError):
            arc_engine.show_offer(accepted, 2)

    def test_progression_slots(self) -> None:
        self.assertTrue(arc_engine.can_progress_today(1, 2))
        self.assertFalse(arc_engine.can_progress_today(2, 2))
        self.assertTrue(arc_engine.can_progress_today(2, 2, extra_slots=1))
        self.assertFalse(arc_engine.can_progress_today(1, 2, step_cost_slots=2))

    def test_due_and_expire_days(self) -> None:
        step = _step(due=1, expires=2)
        self.assertEqual(6, arc_engine.compute_next_due_day(5, step))
        self.assertEqual(8, arc_engine.compute_arc_expire_day(6, step))

    def test_hesitation_strain_adds_stress(self) -> None:
        base = ResourceDelta(resources={"energy": 5})
        self.assertIs(base, arc_engine.apply_disposition_cost("social", base, 1))
        strained = arc_engine.apply_disposition_cost("social", base, 4)
        self.assertEqual({"energy": 5, "stress": 2}, dict(strained.resources))
        capped = arc_engine.apply_disposition_cost("social", base, 40)
        self.assertEqual(3, capped.resources["stress"])

    def test_custom_strain_policy(self) -> None:
        policy = arc_engine.HesitationStrainPolicy(divisor=1, max_bump=5)
        self.assertEqual(4, policy.bump(4))
        self.assertEqual(5, policy.bump(9))
        self.assertEqual(1 + 4, arc_engine.expiry_strain(4, policy))
        self.assertEqual(1, arc_engine.expiry_strain(0))

    def test_branch_key_from_step_key(self) -> None:
        self.assertEqual("b", arc_engine.derive_branch_key("branch_b_1"))
        self.assertIsNone(arc_engine.derive_branch_key("step_0"))
        self.assertIsNone(arc_engine.derive_branch_key(None))

    def test_instance_lifecycle(self) -> None:
        offer = arc_engine.new_offer("o1", "u1", "arc", 3)
        first = _step("step_0", due=0, expires=2)
        instance = arc_engine.start_instance("i1", offer, first, 3)
        self.assertEqual(ArcInstanceState.ACTIVE, instance.state)
        self.assertEqual(3, instance.step_due_day)

        second = _step("branch_a_1", due=1)
        advanced = arc_engine.advance_instance(instance, second, 3, "a")
        self.assertEqual("branch_a_1", advanced.current_step_key)
        self.assertEqual(4, advanced.step_due_day)

        done = arc_engine.advance_instance(advanced, None, 4, "a")
        self.assertEqual(ArcInstanceState.COMPLETED, done.state)
        self.assertEqual(4, done.completed_day)
        with self.assertRaises(ArcTransitionError):
            arc_engine.abandon_instance(done, 5, "abandoned")

    def test_defer_keeps_due_day_until_window_runs_out(self) -> None:
        step = _step(expires=1)
        instance = arc_engine.start_instance("i1", arc_engine.new_offer("o1", "u1", "arc", 1), step, 1)

        deferred = arc_engine.defer_instance(instance, step, 1)
        self.assertEqual(ArcInstanceState.ACTIVE, deferred.state)
        self.assertEqual(1, deferred.step_defer_count)
        self.assertEqual(1, deferred.step_due_day)

        abandoned = arc_engine.defer_instance(deferred, step, 2)
        self.assertEqual(ArcInstanceState.ABANDONED, abandoned.state)
        self.assertEqual("deferred", abandoned.failure_reason)

    def test_step_expiry(self) -> None:
        step = _step(expires=2)
        instance = arc_engine.start_instance("i1", arc_engine.new_offer("o1", "u1", "arc", 1), step, 1)
        self.assertFalse(arc_engine.is_step_expired(3, instance, step))
        self.assertTrue(arc_engine.is_step_expired(4, instance, step))


if __name__ == "__main__":
    unittest.main()
