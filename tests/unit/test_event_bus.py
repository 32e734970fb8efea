import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from daysim.application.services.choice_log_recorder import register_choice_log_handlers
from daysim.application.services.event_bus import EventBus
from daysim.domain.events import ArcEvent, ArcStarted, OfferShown
from daysim.domain.models.arc import ChoiceLogEventType
from daysim.infrastructure.inmemory.repos import InMemoryChoiceLogRepository


class EventBusTests(unittest.TestCase):
    def test_publish_notifies_handlers_in_priority_order(self) -> None:
        bus = EventBus()
        seen = []
        bus.subscribe(OfferShown, lambda evt: seen.append("late"), priority=200)
        bus.subscribe(OfferShown, lambda evt: seen.append("early"), priority=10)
        bus.subscribe(OfferShown, lambda evt: seen.append("default"))

        bus.publish(OfferShown(user_id="u1", day=1, arc_id="arc"))

        self.assertEqual(["early", "default", "late"], seen)

    def test_base_class_subscribers_receive_subclass_events(self) -> None:
        bus = EventBus()
        seen = []
        bus.subscribe(ArcEvent, lambda evt: seen.append(evt.event_type))
        bus.publish(ArcStarted(user_id="u1", day=2, arc_id="arc"))
        bus.publish(OfferShown(user_id="u1", day=2, arc_id="arc"))
        self.assertEqual([ChoiceLogEventType.ARC_STARTED, ChoiceLogEventType.OFFER_SHOWN], seen)

    def test_failing_handler_is_isolated(self) -> None:
        bus = EventBus()
        seen = []

        def broken(_event) -> None:
            raise RuntimeError("boom")

        bus.subscribe(OfferShown, broken, priority=1)
        bus.subscribe(OfferShown, lambda evt: seen.append("after"), priority=2)

        with self.assertLogs("daysim.application.services.event_bus", level="ERROR"):
            bus.publish(OfferShown(user_id="u1", day=1, arc_id="arc"))

        self.assertEqual(["after"], seen)
        self.assertEqual(1, len(bus.last_publish_errors()))

    def test_unsubscribe_removes_only_that_handler(self) -> None:
        bus = EventBus()
        seen = []

        def first(_event) -> None:
            seen.append("first")

        bus.subscribe(OfferShown, first)
        bus.subscribe(OfferShown, lambda evt: seen.append("second"))

        self.assertTrue(bus.unsubscribe(OfferShown, first))
        self.assertFalse(bus.unsubscribe(OfferShown, first))
        bus.publish(OfferShown(user_id="u1", day=1, arc_id="arc"))

        self.assertEqual(["second"], seen)

    def test_choice_log_recorder_persists_arc_events(self) -> None:
        bus = EventBus()
        repo = InMemoryChoiceLogRepository()
        register_choice_log_handlers(event_bus=bus, choice_log_repo=repo)

        bus.publish(
            ArcStarted(
                user_id="u1",
                day=3,
                arc_id="roommate_v1",
                arc_instance_id="inst-1",
                step_key="roommate_1",
                offer_id="offer-1",
                meta={"tone_level": 1},
            )
        )

        entries = repo.list_for_day("u1", 3)
        self.assertEqual(1, len(entries))
        self.assertEqual(ChoiceLogEventType.ARC_STARTED, entries[0].event_type)
        self.assertEqual("offer-1", entries[0].offer_id)
        self.assertEqual({"tone_level": 1}, dict(entries[0].meta))
        self.assertEqual([], repo.list_for_day("u1", 3, ChoiceLogEventType.STEP_RESOLVED))


if __name__ == "__main__":
    unittest.main()
