from __future__ import annotations

import logging
import os
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Mapping, Optional

from daysim.domain.models.resources import (
    LEGACY_RESOURCE_ALIASES,
    PERCENT_RESOURCE_KEYS,
    RESOURCE_KEYS,
    STRESS,
    ResourceDelta,
    ResourceSnapshot,
    clamp,
)


logger = logging.getLogger(__name__)

TRACE_LIMIT = 200


@dataclass(frozen=True)
class ResourceApplication:
    next: ResourceSnapshot
    applied: Dict[str, int]


@dataclass(frozen=True)
class ResourceTraceEvent:
    day_index: int
    source: str
    requested: Dict[str, int]
    before: Dict[str, int]
    after: Dict[str, int]
    recorded_at: float = field(default_factory=time.time)
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def effective(self) -> Dict[str, int]:
        return {
            key: self.after[key] - self.before[key]
            for key in self.after
            if key in self.before and self.after[key] != self.before[key]
        }


_TRACE_BUFFER: Deque[ResourceTraceEvent] = deque(maxlen=TRACE_LIMIT)


def is_resource_trace_enabled() -> bool:
    return os.getenv("DAYSIM_RESOURCE_TRACE", "0").strip().lower() in {"1", "true", "yes"}


def record_resource_trace(event: ResourceTraceEvent) -> None:
    if not is_resource_trace_enabled():
        return
    _TRACE_BUFFER.append(event)


def get_resource_trace() -> List[ResourceTraceEvent]:
    return list(_TRACE_BUFFER)


def clear_resource_trace() -> None:
    _TRACE_BUFFER.clear()


def normalize_resource_delta(resources: Mapping[str, object] | None) -> Dict[str, int]:
    """Fold legacy spellings into canonical keys, summing duplicates.

    Unknown keys, ``morale`` and non-numeric values are dropped.
    """
    normalized: Dict[str, int] = {}
    for raw_key, raw_value in (resources or {}).items():
        if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)):
            continue
        key = LEGACY_RESOURCE_ALIASES.get(str(raw_key), str(raw_key))
        if key not in RESOURCE_KEYS:
            continue
        normalized[key] = normalized.get(key, 0) + int(raw_value)
    return normalized


def apply_resource_delta_to_snapshot(
    snapshot: ResourceSnapshot,
    resources: Mapping[str, object] | None,
    *,
    day_index: int = 0,
    source: str = "unknown",
) -> ResourceApplication:
    normalized = normalize_resource_delta(resources)

    next_values: Dict[str, int] = {}
    for key in RESOURCE_KEYS:
        value = snapshot.value_of(key) + normalized.get(key, 0)
        if key in PERCENT_RESOURCE_KEYS:
            value = clamp(value, 0, 100)
        next_values[key] = value

    next_snapshot = snapshot.with_values(next_values)
    applied = {key: value for key, value in normalized.items() if value != 0}

    clamped = [
        key
        for key in applied
        if key in PERCENT_RESOURCE_KEYS and next_values[key] != snapshot.value_of(key) + applied[key]
    ]
    if clamped:
        logger.debug(
            "Resource delta clamped",
            extra={"day_index": day_index, "source": source, "keys": clamped},
        )

    if applied:
        record_resource_trace(
            ResourceTraceEvent(
                day_index=int(day_index),
                source=source,
                requested=dict(applied),
                before=snapshot.to_dict(),
                after=next_snapshot.to_dict(),
            )
        )
    return ResourceApplication(next=next_snapshot, applied=applied)


def merge_costs_and_rewards(costs: ResourceDelta, rewards: ResourceDelta) -> ResourceDelta:
    """Combine an option's costs with its rewards.

    Cost amounts are taken by absolute value: spendable resources are debited
    while a stress cost raises stress.
    """
    resources: Dict[str, int] = {}
    dispositions: Dict[str, int] = {}
    skill_points: Optional[int] = None

    for key, value in normalize_resource_delta(costs.resources).items():
        amount = abs(value) if key == STRESS else -abs(value)
        resources[key] = resources.get(key, 0) + amount
    for key, value in normalize_resource_delta(rewards.resources).items():
        resources[key] = resources.get(key, 0) + value

    for key, value in costs.dispositions.items():
        dispositions[key] = dispositions.get(key, 0) - int(value)
    for key, value in rewards.dispositions.items():
        dispositions[key] = dispositions.get(key, 0) + int(value)

    if costs.skill_points is not None:
        skill_points = -abs(int(costs.skill_points))
    if rewards.skill_points is not None:
        skill_points = (skill_points or 0) + int(rewards.skill_points)

    return ResourceDelta(resources=resources, skill_points=skill_points, dispositions=dispositions)


def find_unaffordable_resource(snapshot: ResourceSnapshot, costs: ResourceDelta) -> Optional[str]:
    """Return the first canonical key whose cost exceeds what the player holds."""
    for key, amount in normalize_resource_delta(costs.resources).items():
        if key == STRESS:
            continue
        if snapshot.value_of(key) < abs(amount):
            return key
    return None
