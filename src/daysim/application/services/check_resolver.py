from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from daysim.application.services.seed_policy import hash_to_unit_float
from daysim.domain.models.storylet import SKILL_KEYS, Check


MIN_CHANCE = 0.05
MAX_CHANCE = 0.95


@dataclass(frozen=True)
class CheckContributions:
    base: float
    skills: Mapping[str, float] = field(default_factory=dict)
    energy: float = 0.0
    stress: float = 0.0
    posture: float = 0.0

    def total(self) -> float:
        return self.base + sum(self.skills.values()) + self.energy + self.stress + self.posture


@dataclass(frozen=True)
class CheckResult:
    chance: float
    success: bool
    contributions: CheckContributions


def resolve_check(
    check: Check,
    skills: Mapping[str, int],
    day_state: Mapping[str, int],
    posture: Optional[str],
    seed: str,
) -> CheckResult:
    skill_contributions: Dict[str, float] = {key: 0.0 for key in SKILL_KEYS}
    for key, weight in check.skill_weights.items():
        if not isinstance(weight, (int, float)):
            continue
        skill_contributions[key] = float(skills.get(key, 0)) * float(weight)

    energy_bonus = math.floor(int(day_state.get("energy", 0)) / 10) * float(check.energy_weight)
    stress_bonus = math.floor(int(day_state.get("stress", 0)) / 10) * float(check.stress_weight)
    posture_bonus = 0.0
    if posture:
        value = check.posture_bonus.get(posture)
        if isinstance(value, (int, float)):
            posture_bonus = float(value)

    contributions = CheckContributions(
        base=float(check.base_chance),
        skills=skill_contributions,
        energy=energy_bonus,
        stress=stress_bonus,
        posture=posture_bonus,
    )
    chance = max(MIN_CHANCE, min(MAX_CHANCE, contributions.total()))
    return CheckResult(
        chance=chance,
        success=hash_to_unit_float(seed) < chance,
        contributions=contributions,
    )
