"""Time allocation effects on the day's energy, stress and vectors.

A player splits the day between study, work, social, health and fun. The
split moves energy and stress once per distinct allocation, skills soften
the costs and the day's posture scales them. Hours spent also credit the
stocks: work pays cash, study builds knowledge, social builds leverage and
health builds resilience.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from daysim.domain.models.resources import (
    CASH_ON_HAND,
    ENERGY,
    KNOWLEDGE,
    PHYSICAL_RESILIENCE,
    SOCIAL_LEVERAGE,
    STRESS,
)


ALLOCATION_KEYS = ("study", "work", "social", "health", "fun")


@dataclass(frozen=True)
class AllocationEffect:
    energy_delta: int
    stress_delta: int
    knowledge_gain: int = 0
    cash_gain: int = 0
    social_leverage_gain: int = 0
    resilience_gain: int = 0

    def to_resources(self) -> Dict[str, int]:
        return {
            ENERGY: self.energy_delta,
            STRESS: self.stress_delta,
            KNOWLEDGE: self.knowledge_gain,
            CASH_ON_HAND: self.cash_gain,
            SOCIAL_LEVERAGE: self.social_leverage_gain,
            PHYSICAL_RESILIENCE: self.resilience_gain,
        }


def _clamp_multiplier(value: float) -> float:
    return max(0.85, min(1.2, value))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_allocation(raw: Mapping[str, object] | None) -> Dict[str, int]:
    allocation = {key: 0 for key in ALLOCATION_KEYS}
    for key, value in (raw or {}).items():
        if key not in allocation:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        allocation[key] = max(0, int(value))
    return allocation


def allocation_to_vector_deltas(allocation: Mapping[str, int]) -> Dict[str, int]:
    deltas: Dict[str, int] = {}
    if allocation.get("study", 0) >= 40:
        deltas["focus"] = deltas.get("focus", 0) + 1
    if allocation.get("work", 0) >= 40:
        deltas["ambition"] = deltas.get("ambition", 0) + 1
    if allocation.get("social", 0) >= 30:
        deltas["social"] = deltas.get("social", 0) + 1
    if allocation.get("health", 0) + allocation.get("fun", 0) >= 40:
        deltas["stability"] = deltas.get("stability", 0) + 1
    return deltas


def compute_allocation_effect(
    allocation: Mapping[str, int],
    posture: Optional[str] = None,
    skills: Mapping[str, int] | None = None,
) -> AllocationEffect:
    skills = skills or {}
    study = allocation.get("study", 0)
    work = allocation.get("work", 0)
    social = allocation.get("social", 0)
    health = allocation.get("health", 0)
    fun = allocation.get("fun", 0)

    focus_mult = _clamp_multiplier(1 - min(0.03 * skills.get("focus", 0), 0.15))
    memory_mult = _clamp_multiplier(1 - min(0.01 * skills.get("memory", 0), 0.05))
    networking_mult = _clamp_multiplier(1 + min(0.03 * skills.get("networking", 0), 0.15))
    grit_stress_mult = _clamp_multiplier(1 - min(0.02 * skills.get("grit", 0), 0.1))
    grit_energy_mult = _clamp_multiplier(1 - min(0.03 * skills.get("grit", 0), 0.15))

    stress_from_study = 0.25 * study
    if study > 0:
        stress_from_study *= focus_mult
    social_relief = 0.1 * social
    if social > 0:
        social_relief *= networking_mult

    stress = stress_from_study + 0.25 * work - 0.35 * (health + fun) - social_relief
    if study > 0:
        stress *= memory_mult
    stress *= grit_stress_mult

    energy = -0.3 * (study + work + social) + 0.45 * health + 0.25 * fun
    if energy < 0:
        energy *= grit_energy_mult

    if posture == "push":
        stress *= 1.2
        energy *= 0.9
    elif posture == "steady":
        stress *= 0.8
        energy *= 1.1
    elif posture == "connect":
        if social > 0:
            stress *= 0.85
    elif posture == "recover":
        stress *= 0.7
        energy *= 1.2

    return AllocationEffect(
        energy_delta=_round_half_up(energy),
        stress_delta=_round_half_up(stress),
        knowledge_gain=study // 10,
        cash_gain=work // 10,
        social_leverage_gain=social // 10,
        resilience_gain=health // 20,
    )
