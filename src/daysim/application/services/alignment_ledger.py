from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from daysim.application.services.event_bus import EventBus
from daysim.domain.events import AlignmentShifted
from daysim.domain.models.alignment import (
    ARC_CHOICE_ALIGNMENT_DELTAS,
    FACTION_KEYS,
    MAX_DELTA_PER_EVENT,
    MAX_POSITIVE_GAIN_PER_DAY,
    AlignmentEvent,
    AlignmentSource,
    UserAlignment,
    is_faction_key,
)
from daysim.domain.repositories import AlignmentRepository


logger = logging.getLogger(__name__)


def clamp_alignment_delta(delta: int) -> int:
    return max(-MAX_DELTA_PER_EVENT, min(MAX_DELTA_PER_EVENT, int(delta)))


def positive_sum(events: Iterable[AlignmentEvent]) -> int:
    return sum(event.delta for event in events if event.delta > 0)


def plan_alignment_delta(delta: int, positive_sum_today: int) -> int:
    """Return the delta that may actually be recorded, or 0 for a no-op."""
    clamped = clamp_alignment_delta(delta)
    if clamped <= 0:
        return clamped
    if positive_sum_today >= MAX_POSITIVE_GAIN_PER_DAY:
        return 0
    return min(clamped, MAX_POSITIVE_GAIN_PER_DAY - positive_sum_today)


class AlignmentLedger:
    def __init__(self, alignment_repo: AlignmentRepository, event_bus: EventBus | None = None) -> None:
        self.alignment_repo = alignment_repo
        self.event_bus = event_bus

    def has_alignment_event(self, user_id: str, source: AlignmentSource | str, source_ref: str) -> bool:
        return self.alignment_repo.has_event(user_id, AlignmentSource(source).value, source_ref)

    def apply_alignment_delta(
        self,
        user_id: str,
        day_index: int,
        faction_key: str,
        delta: int,
        source: AlignmentSource | str,
        source_ref: Optional[str] = None,
    ) -> Optional[AlignmentEvent]:
        if not is_faction_key(faction_key):
            raise ValueError(f"Unknown faction key: {faction_key}")
        source = AlignmentSource(source)

        if source_ref and self.has_alignment_event(user_id, source, source_ref):
            logger.info(
                "Alignment event already recorded",
                extra={"user_id": user_id, "source": source.value, "source_ref": source_ref},
            )
            return None

        todays = self.alignment_repo.list_events(user_id, day_index, faction_key)
        applied = plan_alignment_delta(delta, positive_sum(todays))
        if applied == 0:
            return None

        current = self.alignment_repo.get(user_id, faction_key) or UserAlignment(user_id=user_id, faction_key=faction_key)
        updated = UserAlignment(user_id=user_id, faction_key=faction_key, score=current.score + applied)
        event = AlignmentEvent(
            user_id=user_id,
            day_index=int(day_index),
            faction_key=faction_key,
            delta=applied,
            source=source,
            source_ref=source_ref,
        )
        self.alignment_repo.save(updated)
        self.alignment_repo.append_event(event)

        if self.event_bus is not None:
            self.event_bus.publish(
                AlignmentShifted(
                    user_id=user_id,
                    day_index=int(day_index),
                    faction_key=faction_key,
                    delta=applied,
                    score_after=updated.score,
                    source=source.value,
                    source_ref=source_ref,
                )
            )
        return event

    def apply_arc_choice(
        self,
        user_id: str,
        day_index: int,
        option_key: str,
        source_ref: str,
    ) -> Optional[AlignmentEvent]:
        mapping = ARC_CHOICE_ALIGNMENT_DELTAS.get(option_key)
        if mapping is None:
            return None
        faction_key, delta = mapping
        return self.apply_alignment_delta(
            user_id,
            day_index,
            faction_key,
            delta,
            AlignmentSource.ARC_CHOICE,
            source_ref,
        )

    def scores(self, user_id: str) -> Dict[str, int]:
        scores = {key: 0 for key in FACTION_KEYS}
        for row in self.alignment_repo.list_for_user(user_id):
            scores[row.faction_key] = row.score
        return scores
