from __future__ import annotations

import copy
from typing import Dict, Iterable, List, Optional, Set, Tuple

from daysim.domain.models.alignment import AlignmentEvent, UserAlignment
from daysim.domain.models.arc import (
    ArcDefinition,
    ArcInstance,
    ArcOffer,
    ArcStep,
    ChoiceLogEntry,
    ChoiceLogEventType,
    NpcRelation,
)
from daysim.domain.models.daily import DayProgress
from daysim.domain.models.resources import ResourceSnapshot
from daysim.domain.models.storylet import StoryletRun
from daysim.domain.repositories import (
    AlignmentRepository,
    ArcRepository,
    ChoiceLogRepository,
    DayStateRepository,
    DispositionRepository,
    RelationRepository,
    StoryletRunRepository,
)


class InMemoryArcRepository(ArcRepository):
    def __init__(
        self,
        definitions: Iterable[ArcDefinition] = (),
        steps: Iterable[ArcStep] = (),
    ) -> None:
        self._definitions: Dict[str, ArcDefinition] = {arc.id: arc for arc in definitions}
        self._steps: Dict[str, List[ArcStep]] = {}
        for step in steps:
            self._steps.setdefault(step.arc_id, []).append(step)
        self._offers: Dict[str, ArcOffer] = {}
        self._instances: Dict[str, ArcInstance] = {}

    def list_definitions(self) -> List[ArcDefinition]:
        return sorted(self._definitions.values(), key=lambda arc: arc.key)

    def get_definition(self, arc_id: str) -> Optional[ArcDefinition]:
        return self._definitions.get(arc_id)

    def list_steps(self, arc_id: str) -> List[ArcStep]:
        return sorted(self._steps.get(arc_id, []), key=lambda step: step.order_index)

    def list_offers(self, user_id: str) -> List[ArcOffer]:
        return [offer for offer in self._offers.values() if offer.user_id == user_id]

    def get_offer(self, offer_id: str) -> Optional[ArcOffer]:
        return self._offers.get(offer_id)

    def save_offer(self, offer: ArcOffer) -> None:
        self._offers[offer.id] = offer

    def list_instances(self, user_id: str) -> List[ArcInstance]:
        return [instance for instance in self._instances.values() if instance.user_id == user_id]

    def get_instance(self, instance_id: str) -> Optional[ArcInstance]:
        return self._instances.get(instance_id)

    def save_instance(self, instance: ArcInstance) -> None:
        self._instances[instance.id] = instance


class InMemoryChoiceLogRepository(ChoiceLogRepository):
    def __init__(self) -> None:
        self.entries: List[ChoiceLogEntry] = []

    def append(self, entry: ChoiceLogEntry) -> None:
        self.entries.append(entry)

    def list_for_day(
        self,
        user_id: str,
        day: int,
        event_type: Optional[ChoiceLogEventType] = None,
    ) -> List[ChoiceLogEntry]:
        return [
            entry
            for entry in self.entries
            if entry.user_id == user_id and entry.day == day and (event_type is None or entry.event_type == event_type)
        ]


class InMemoryDispositionRepository(DispositionRepository):
    def __init__(self) -> None:
        self._hesitation: Dict[Tuple[str, str], int] = {}

    def get_hesitation(self, user_id: str, tag: str) -> int:
        return self._hesitation.get((user_id, tag), 0)

    def adjust_hesitation(self, user_id: str, tag: str, delta: int) -> int:
        value = max(0, self.get_hesitation(user_id, tag) + int(delta))
        self._hesitation[(user_id, tag)] = value
        return value


class InMemoryRelationRepository(RelationRepository):
    def __init__(self) -> None:
        self._relations: Dict[Tuple[str, str], NpcRelation] = {}

    def get(self, user_id: str, npc_key: str) -> Optional[NpcRelation]:
        return self._relations.get((user_id, npc_key))

    def save(self, relation: NpcRelation) -> None:
        self._relations[(relation.user_id, relation.npc_key)] = relation


class InMemoryDayStateRepository(DayStateRepository):
    """Day snapshots carry forward: a day without its own row starts from the latest earlier one."""

    def __init__(self) -> None:
        self._snapshots: Dict[Tuple[str, int], ResourceSnapshot] = {}
        self._actions: Set[Tuple[str, int, str]] = set()
        self._progress: Dict[Tuple[str, int], DayProgress] = {}
        self._setup_done: Set[str] = set()

    def get_snapshot(self, user_id: str, day_index: int) -> Optional[ResourceSnapshot]:
        days = [day for (user, day) in self._snapshots if user == user_id and day <= day_index]
        if not days:
            return None
        return self._snapshots[(user_id, max(days))]

    def save_snapshot(self, user_id: str, day_index: int, snapshot: ResourceSnapshot) -> None:
        self._snapshots[(user_id, day_index)] = snapshot

    def record_action(self, user_id: str, day_index: int, action_key: str) -> bool:
        key = (user_id, day_index, action_key)
        if key in self._actions:
            return False
        self._actions.add(key)
        return True

    def count_actions(self, user_id: str, day_index: int, prefix: str = "") -> int:
        return sum(
            1 for user, day, action_key in self._actions if user == user_id and day == day_index and action_key.startswith(prefix)
        )

    def get_progress(self, user_id: str, day_index: int) -> DayProgress:
        stored = self._progress.get((user_id, day_index))
        if stored is not None:
            return copy.deepcopy(stored)
        earlier = [day for (user, day) in self._progress if user == user_id and day < day_index]
        progress = DayProgress(user_id=user_id, day_index=day_index)
        if earlier:
            previous = self._progress[(user_id, max(earlier))]
            progress.vectors = dict(previous.vectors)
            progress.skills = dict(previous.skills)
        return progress

    def save_progress(self, progress: DayProgress) -> None:
        self._progress[(progress.user_id, progress.day_index)] = copy.deepcopy(progress)

    def has_completed_setup(self, user_id: str) -> bool:
        return user_id in self._setup_done

    def mark_setup_complete(self, user_id: str) -> None:
        self._setup_done.add(user_id)


class InMemoryStoryletRunRepository(StoryletRunRepository):
    def __init__(self) -> None:
        self._runs: Dict[Tuple[str, int, str], StoryletRun] = {}

    def list_runs(self, user_id: str, from_day: int, to_day: int) -> List[StoryletRun]:
        runs = [
            run
            for (user, day, _), run in self._runs.items()
            if user == user_id and from_day <= day <= to_day
        ]
        return sorted(runs, key=lambda run: run.day_index)

    def record_run(self, run: StoryletRun) -> bool:
        key = (run.user_id, run.day_index, run.storylet_id)
        if key in self._runs:
            return False
        self._runs[key] = run
        return True


class InMemoryAlignmentRepository(AlignmentRepository):
    def __init__(self) -> None:
        self._scores: Dict[Tuple[str, str], UserAlignment] = {}
        self.events: List[AlignmentEvent] = []

    def get(self, user_id: str, faction_key: str) -> Optional[UserAlignment]:
        return self._scores.get((user_id, faction_key))

    def list_for_user(self, user_id: str) -> List[UserAlignment]:
        return [row for (user, _), row in sorted(self._scores.items()) if user == user_id]

    def save(self, alignment: UserAlignment) -> None:
        self._scores[(alignment.user_id, alignment.faction_key)] = alignment

    def append_event(self, event: AlignmentEvent) -> None:
        self.events.append(event)

    def list_events(self, user_id: str, day_index: int, faction_key: str) -> List[AlignmentEvent]:
        return [
            event
            for event in self.events
            if event.user_id == user_id and event.day_index == day_index and event.faction_key == faction_key
        ]

    def has_event(self, user_id: str, source: str, source_ref: str) -> bool:
        return any(
            event.user_id == user_id and event.source == source and event.source_ref == source_ref
            for event in self.events
        )
