from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

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
from daysim.domain.models.storylet import Storylet, StoryletRun


class ArcRepository(ABC):
    @abstractmethod
    def list_definitions(self) -> List[ArcDefinition]:
        raise NotImplementedError

    @abstractmethod
    def get_definition(self, arc_id: str) -> Optional[ArcDefinition]:
        raise NotImplementedError

    @abstractmethod
    def list_steps(self, arc_id: str) -> List[ArcStep]:
        raise NotImplementedError

    @abstractmethod
    def list_offers(self, user_id: str) -> List[ArcOffer]:
        raise NotImplementedError

    @abstractmethod
    def get_offer(self, offer_id: str) -> Optional[ArcOffer]:
        raise NotImplementedError

    @abstractmethod
    def save_offer(self, offer: ArcOffer) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_instances(self, user_id: str) -> List[ArcInstance]:
        raise NotImplementedError

    @abstractmethod
    def get_instance(self, instance_id: str) -> Optional[ArcInstance]:
        raise NotImplementedError

    @abstractmethod
    def save_instance(self, instance: ArcInstance) -> None:
        raise NotImplementedError

    def get_step(self, arc_id: str, step_key: str) -> Optional[ArcStep]:
        for step in self.list_steps(arc_id):
            if step.step_key == step_key:
                return step
        return None


class ChoiceLogRepository(ABC):
    @abstractmethod
    def append(self, entry: ChoiceLogEntry) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_for_day(
        self,
        user_id: str,
        day: int,
        event_type: Optional[ChoiceLogEventType] = None,
    ) -> List[ChoiceLogEntry]:
        raise NotImplementedError


class DispositionRepository(ABC):
    @abstractmethod
    def get_hesitation(self, user_id: str, tag: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def adjust_hesitation(self, user_id: str, tag: str, delta: int) -> int:
        raise NotImplementedError


class RelationRepository(ABC):
    @abstractmethod
    def get(self, user_id: str, npc_key: str) -> Optional[NpcRelation]:
        raise NotImplementedError

    @abstractmethod
    def save(self, relation: NpcRelation) -> None:
        raise NotImplementedError


class DayStateRepository(ABC):
    @abstractmethod
    def get_snapshot(self, user_id: str, day_index: int) -> Optional[ResourceSnapshot]:
        raise NotImplementedError

    @abstractmethod
    def save_snapshot(self, user_id: str, day_index: int, snapshot: ResourceSnapshot) -> None:
        raise NotImplementedError

    @abstractmethod
    def record_action(self, user_id: str, day_index: int, action_key: str) -> bool:
        """Record an idempotency key; returns False when it was already recorded."""
        raise NotImplementedError

    @abstractmethod
    def count_actions(self, user_id: str, day_index: int, prefix: str = "") -> int:
        raise NotImplementedError

    @abstractmethod
    def get_progress(self, user_id: str, day_index: int) -> DayProgress:
        raise NotImplementedError

    @abstractmethod
    def save_progress(self, progress: DayProgress) -> None:
        raise NotImplementedError

    @abstractmethod
    def has_completed_setup(self, user_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def mark_setup_complete(self, user_id: str) -> None:
        raise NotImplementedError


class StoryletRunRepository(ABC):
    @abstractmethod
    def list_runs(self, user_id: str, from_day: int, to_day: int) -> List[StoryletRun]:
        raise NotImplementedError

    @abstractmethod
    def record_run(self, run: StoryletRun) -> bool:
        raise NotImplementedError


class AlignmentRepository(ABC):
    @abstractmethod
    def get(self, user_id: str, faction_key: str) -> Optional[UserAlignment]:
        raise NotImplementedError

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[UserAlignment]:
        raise NotImplementedError

    @abstractmethod
    def save(self, alignment: UserAlignment) -> None:
        raise NotImplementedError

    @abstractmethod
    def append_event(self, event: AlignmentEvent) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_events(self, user_id: str, day_index: int, faction_key: str) -> List[AlignmentEvent]:
        raise NotImplementedError

    @abstractmethod
    def has_event(self, user_id: str, source: str, source_ref: str) -> bool:
        raise NotImplementedError


class StoryletCatalogProvider(ABC):
    @abstractmethod
    def list_storylets(self, season_index: Optional[int] = None) -> List[Storylet]:
        raise NotImplementedError

    @abstractmethod
    def content_stamp(self) -> Optional[str]:
        raise NotImplementedError


class CatalogCache(ABC):
    @abstractmethod
    def get(
        self,
        cache_key: str,
        *,
        ttl_seconds: Optional[int],
        allow_stale: bool = False,
    ) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def set(self, cache_key: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class StoryletRowSource(ABC):
    """Where raw storylet rows come from before coercion."""

    @abstractmethod
    def fetch_stamp(self) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def fetch_storylet_rows(self, season_index: Optional[int] = None) -> List[Dict[str, Any]]:
        raise NotImplementedError
