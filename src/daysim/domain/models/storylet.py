from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple


ONBOARDING_TAG = "onboarding"
DEFAULT_STORYLET_WEIGHT = 100
SKILL_KEYS: Tuple[str, ...] = ("focus", "memory", "networking", "grit")


@dataclass(frozen=True)
class ExperimentRule:
    experiment_id: str
    variants_any: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AudienceRule:
    rollout_pct: Optional[float] = None
    experiment: Optional[ExperimentRule] = None
    allow_admin: Optional[bool] = None

    def has_rules(self) -> bool:
        return (
            self.rollout_pct is not None
            or bool(self.experiment and self.experiment.experiment_id)
            or self.allow_admin is not None
        )


@dataclass(frozen=True)
class Requirements:
    min_day_index: Optional[int] = None
    max_day_index: Optional[int] = None
    requires_tags_any: Tuple[str, ...] = ()
    vectors_min: Mapping[str, float] = field(default_factory=dict)
    min_season_index: Optional[int] = None
    max_season_index: Optional[int] = None
    seasons_any: Tuple[int, ...] = ()
    audience: Optional[AudienceRule] = None

    def has_season_rules(self) -> bool:
        return self.min_season_index is not None or self.max_season_index is not None or bool(self.seasons_any)

    def has_audience_rules(self) -> bool:
        return self.audience is not None and self.audience.has_rules()


@dataclass(frozen=True)
class OutcomeModifier:
    vector: str
    per10: float = 0


@dataclass(frozen=True)
class OutcomeDeltas:
    energy: int = 0
    stress: int = 0
    vectors: Mapping[str, int] = field(default_factory=dict)
    resources: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class OutcomeOption:
    id: str
    weight: float
    modifiers: Optional[OutcomeModifier] = None
    text: str = ""
    deltas: OutcomeDeltas = field(default_factory=OutcomeDeltas)
    anomalies: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Check:
    id: str
    base_chance: float
    skill_weights: Mapping[str, float] = field(default_factory=dict)
    energy_weight: float = 0
    stress_weight: float = 0
    posture_bonus: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class StoryletOutcome:
    text: str = ""
    deltas: OutcomeDeltas = field(default_factory=OutcomeDeltas)
    anomalies: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Choice:
    id: str
    label: str
    outcome: Optional[StoryletOutcome] = None
    outcomes: Tuple[OutcomeOption, ...] = ()
    check: Optional[Check] = None


@dataclass(frozen=True)
class Storylet:
    id: str
    slug: str
    title: str
    body: str
    choices: Tuple[Choice, ...] = ()
    is_active: bool = True
    tags: Tuple[str, ...] = ()
    requirements: Requirements = field(default_factory=Requirements)
    weight: float = DEFAULT_STORYLET_WEIGHT
    created_at: Optional[str] = None

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def choice(self, choice_id: str) -> Optional[Choice]:
        for candidate in self.choices:
            if candidate.id == choice_id:
                return candidate
        return None


@dataclass(frozen=True)
class StoryletRun:
    storylet_id: str
    day_index: int
    choice_id: Optional[str] = None
    user_id: str = ""


@dataclass
class DailyState:
    """Mutable per-day player state fed to the selector and check resolver."""

    day_index: int
    energy: int = 100
    stress: int = 0
    vectors: Dict[str, int] = field(default_factory=dict)
    posture: Optional[str] = None


@dataclass(frozen=True)
class StoryletContext:
    posture: Optional[str] = None
    unresolved_tension_keys: Tuple[str, ...] = ()
    directive_tags: Tuple[str, ...] = ()


def fallback_storylet() -> Storylet:
    return Storylet(
        id="corrupted-storylet",
        slug="corrupted-storylet",
        title="Corrupted Storylet",
        body="This event could not be loaded. Please continue.",
        choices=(Choice(id="continue", label="Continue"),),
        is_active=False,
    )
