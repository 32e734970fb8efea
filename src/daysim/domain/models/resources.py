from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Mapping


ENERGY = "energy"
STRESS = "stress"
KNOWLEDGE = "knowledge"
CASH_ON_HAND = "cashOnHand"
SOCIAL_LEVERAGE = "socialLeverage"
PHYSICAL_RESILIENCE = "physicalResilience"
MORALE = "morale"

RESOURCE_KEYS: tuple[str, ...] = (
    ENERGY,
    STRESS,
    KNOWLEDGE,
    CASH_ON_HAND,
    SOCIAL_LEVERAGE,
    PHYSICAL_RESILIENCE,
)
PERCENT_RESOURCE_KEYS = frozenset({ENERGY, STRESS, PHYSICAL_RESILIENCE})

LEGACY_RESOURCE_ALIASES: Dict[str, str] = {
    "study_progress": KNOWLEDGE,
    "money": CASH_ON_HAND,
    "social_capital": SOCIAL_LEVERAGE,
    "health": PHYSICAL_RESILIENCE,
}

_ATTRIBUTE_BY_KEY: Dict[str, str] = {
    ENERGY: "energy",
    STRESS: "stress",
    KNOWLEDGE: "knowledge",
    CASH_ON_HAND: "cash_on_hand",
    SOCIAL_LEVERAGE: "social_leverage",
    PHYSICAL_RESILIENCE: "physical_resilience",
}


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def compute_morale(energy: int, stress: int) -> int:
    raw = 50 + int(energy) - int(stress)
    return clamp(raw, 0, 100)


@dataclass(frozen=True)
class ResourceSnapshot:
    """Point-in-time player resources. Morale is always derived from energy and stress."""

    energy: int = 100
    stress: int = 0
    knowledge: int = 0
    cash_on_hand: int = 0
    social_leverage: int = 0
    physical_resilience: int = 50

    @property
    def morale(self) -> int:
        return compute_morale(self.energy, self.stress)

    def value_of(self, key: str) -> int:
        if key == MORALE:
            return self.morale
        canonical = LEGACY_RESOURCE_ALIASES.get(key, key)
        attribute = _ATTRIBUTE_BY_KEY.get(canonical)
        if attribute is None:
            raise KeyError(key)
        return int(getattr(self, attribute))

    def with_values(self, values: Mapping[str, int]) -> "ResourceSnapshot":
        changes = {_ATTRIBUTE_BY_KEY[key]: int(value) for key, value in values.items() if key in _ATTRIBUTE_BY_KEY}
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, int]:
        payload = {key: int(getattr(self, attribute)) for key, attribute in _ATTRIBUTE_BY_KEY.items()}
        payload[MORALE] = self.morale
        return payload

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object] | None) -> "ResourceSnapshot":
        values: Dict[str, int] = {}
        for raw_key, raw_value in (payload or {}).items():
            key = LEGACY_RESOURCE_ALIASES.get(str(raw_key), str(raw_key))
            if key not in _ATTRIBUTE_BY_KEY:
                continue
            try:
                values[key] = int(raw_value)  # type: ignore[arg-type]
            except (TypeError, ValueError):
                continue
        return cls().with_values(values)


@dataclass(frozen=True)
class ResourceDelta:
    """Cost or reward bundle attached to arc options."""

    resources: Mapping[str, int] = field(default_factory=dict)
    skill_points: int | None = None
    dispositions: Mapping[str, int] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not any(self.resources.values()) and not self.skill_points and not any(self.dispositions.values())

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {}
        if self.resources:
            payload["resources"] = dict(self.resources)
        if self.skill_points is not None:
            payload["skill_points"] = int(self.skill_points)
        if self.dispositions:
            payload["dispositions"] = dict(self.dispositions)
        return payload

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object] | None) -> "ResourceDelta":
        payload = payload or {}
        resources = payload.get("resources") or {}
        dispositions = payload.get("dispositions") or {}
        skill_points = payload.get("skill_points")
        return cls(
            resources={str(k): int(v) for k, v in dict(resources).items() if isinstance(v, (int, float))},  # type: ignore[arg-type]
            skill_points=int(skill_points) if isinstance(skill_points, (int, float)) else None,
            dispositions={str(k): int(v) for k, v in dict(dispositions).items() if isinstance(v, (int, float))},  # type: ignore[arg-type]
        )
