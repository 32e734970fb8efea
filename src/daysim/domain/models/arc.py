from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from daysim.domain.models.resources import ResourceDelta


class OfferState(str, Enum):
    ACTIVE = "ACTIVE"
    ACCEPTED = "ACCEPTED"
    EXPIRED = "EXPIRED"
    DISMISSED = "DISMISSED"


class ArcInstanceState(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    ABANDONED = "ABANDONED"


class ChoiceLogEventType(str, Enum):
    OFFER_SHOWN = "OFFER_SHOWN"
    ARC_STARTED = "ARC_STARTED"
    STEP_DEFERRED = "STEP_DEFERRED"
    STEP_RESOLVED = "STEP_RESOLVED"
    STEP_EXPIRED = "STEP_EXPIRED"
    ARC_ABANDONED = "ARC_ABANDONED"
    ARC_FAILED = "ARC_FAILED"
    ARC_COMPLETED = "ARC_COMPLETED"
    OFFER_EXPIRED = "OFFER_EXPIRED"


TERMINAL_INSTANCE_STATES = frozenset(
    {ArcInstanceState.COMPLETED, ArcInstanceState.FAILED, ArcInstanceState.ABANDONED}
)


@dataclass(frozen=True)
class ArcDefinition:
    id: str
    key: str
    title: str
    description: str = ""
    tags: Tuple[str, ...] = ()
    is_enabled: bool = True


@dataclass(frozen=True)
class RelationalEffect:
    npc_key: str
    trust_delta: int = 0
    reliability_delta: int = 0
    emotional_load_delta: int = 0


@dataclass(frozen=True)
class ArcStepOption:
    option_key: str
    label: str
    costs: ResourceDelta = field(default_factory=ResourceDelta)
    rewards: ResourceDelta = field(default_factory=ResourceDelta)
    skill_requirement: Optional[str] = None
    identity_tags: Tuple[str, ...] = ()
    relational_effects: Optional[RelationalEffect] = None
    next_step_key: Optional[str] = None
    outcome_type: Optional[str] = None


@dataclass(frozen=True)
class ArcStep:
    id: str
    arc_id: str
    step_key: str
    order_index: int
    title: str
    body: str = ""
    options: Tuple[ArcStepOption, ...] = ()
    default_next_step_key: Optional[str] = None
    due_offset_days: int = 0
    expires_after_days: int = 0

    def option(self, option_key: str) -> Optional[ArcStepOption]:
        for candidate in self.options:
            if candidate.option_key == option_key:
                return candidate
        return None


@dataclass(frozen=True)
class ArcOffer:
    id: str
    user_id: str
    arc_id: str
    offer_key: str = "default"
    state: OfferState = OfferState.ACTIVE
    times_shown: int = 0
    tone_level: int = 0
    first_seen_day: int = 0
    last_seen_day: int = 0
    expires_on_day: int = 0


@dataclass(frozen=True)
class ArcInstance:
    id: str
    user_id: str
    arc_id: str
    state: ArcInstanceState
    current_step_key: str
    step_due_day: int
    step_defer_count: int = 0
    started_day: int = 0
    updated_day: int = 0
    completed_day: Optional[int] = None
    failure_reason: Optional[str] = None
    branch_key: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.state == ArcInstanceState.ACTIVE


@dataclass(frozen=True)
class ChoiceLogEntry:
    user_id: str
    day: int
    event_type: ChoiceLogEventType
    arc_id: Optional[str] = None
    arc_instance_id: Optional[str] = None
    step_key: Optional[str] = None
    offer_id: Optional[str] = None
    option_key: Optional[str] = None
    delta: Mapping[str, Any] = field(default_factory=dict)
    meta: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NpcRelation:
    user_id: str
    npc_key: str
    trust: int = 0
    reliability: int = 0
    emotional_load: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"trust": self.trust, "reliability": self.reliability, "emotional_load": self.emotional_load}
