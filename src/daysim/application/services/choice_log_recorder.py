from __future__ import annotations

from daysim.application.services.event_bus import EventBus
from daysim.domain.events import ArcEvent
from daysim.domain.models.arc import ChoiceLogEntry
from daysim.domain.repositories import ChoiceLogRepository


class ChoiceLogRecorder:
    """Persists every arc lifecycle event as an append-only choice log row."""

    def __init__(self, choice_log_repo: ChoiceLogRepository, event_bus: EventBus) -> None:
        self.choice_log_repo = choice_log_repo
        self.event_bus = event_bus

    def register_handlers(self) -> None:
        self.event_bus.subscribe(ArcEvent, self.on_arc_event, priority=10)

    def on_arc_event(self, event: ArcEvent) -> None:
        self.choice_log_repo.append(
            ChoiceLogEntry(
                user_id=event.user_id,
                day=int(event.day),
                event_type=event.event_type,
                arc_id=event.arc_id,
                arc_instance_id=event.arc_instance_id,
                step_key=event.step_key,
                offer_id=event.offer_id,
                option_key=event.option_key,
                delta=dict(event.delta),
                meta=dict(event.meta),
            )
        )


def register_choice_log_handlers(*, event_bus: EventBus, choice_log_repo: ChoiceLogRepository) -> ChoiceLogRecorder:
    recorder = ChoiceLogRecorder(choice_log_repo, event_bus)
    recorder.register_handlers()
    return recorder
