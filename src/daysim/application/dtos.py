from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from daysim.domain.models.arc import ArcDefinition, ArcInstance, ArcOffer, ArcStep
from daysim.domain.models.daily import DailyRunStage
from daysim.domain.models.resources import ResourceSnapshot
from daysim.domain.models.storylet import Storylet


@dataclass
class ArcActionResult:
    accepted: bool
    reason: Optional[str] = None
    message: str = ""
    instance: Optional[ArcInstance] = None
    snapshot: Optional[ResourceSnapshot] = None
    applied: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class DueStep:
    instance: ArcInstance
    step: ArcStep
    arc: ArcDefinition
    expires_on_day: int


@dataclass(frozen=True)
class OfferView:
    offer: ArcOffer
    arc: ArcDefinition


@dataclass
class TodayArcState:
    due_steps: List[DueStep] = field(default_factory=list)
    offers: List[OfferView] = field(default_factory=list)
    active_arcs: List[ArcInstance] = field(default_factory=list)
    progression_slots_total: int = 2
    progression_slots_used: int = 0

    @property
    def progression_slots_remaining(self) -> int:
        return max(0, self.progression_slots_total - self.progression_slots_used)


@dataclass
class DailyRunView:
    user_id: str
    day_index: int
    stage: DailyRunStage
    storylets: List[Storylet] = field(default_factory=list)
    runs_today: int = 0
    snapshot: Optional[ResourceSnapshot] = None
    fun_pulse_eligible: bool = False
    microtask_eligible: bool = False


@dataclass
class ChoiceResolution:
    storylet_id: str
    choice_id: str
    outcome_id: Optional[str]
    text: str
    snapshot: ResourceSnapshot
    vectors: Dict[str, int] = field(default_factory=dict)
    applied: Dict[str, int] = field(default_factory=dict)
    check_chance: Optional[float] = None
    check_success: Optional[bool] = None
