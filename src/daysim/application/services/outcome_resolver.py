from __future__ import annotations

import math
from typing import List, Mapping, Sequence, Tuple

from daysim.application.services.seed_policy import hash_to_unit_float
from daysim.domain.models.storylet import OutcomeOption


def effective_weight(outcome: OutcomeOption, vectors: Mapping[str, float] | None) -> int:
    weight = float(outcome.weight)
    modifier = outcome.modifiers
    if modifier is not None and modifier.vector:
        value = (vectors or {}).get(modifier.vector, 0)
        if not isinstance(value, (int, float)):
            value = 0
        weight += math.floor(value / 10) * modifier.per10
    return max(1, math.floor(weight))


def weighted_table(
    outcomes: Sequence[OutcomeOption],
    vectors: Mapping[str, float] | None,
) -> List[Tuple[OutcomeOption, int]]:
    return [(outcome, effective_weight(outcome, vectors)) for outcome in outcomes]


def choose_weighted_outcome(
    seed: str,
    outcomes: Sequence[OutcomeOption],
    vectors: Mapping[str, float] | None = None,
) -> OutcomeOption:
    if not outcomes:
        raise ValueError("choose_weighted_outcome requires at least one outcome")

    table = weighted_table(outcomes, vectors)
    total = sum(weight for _, weight in table)
    threshold = hash_to_unit_float(seed) * total
    cursor = 0
    for outcome, weight in table:
        cursor += weight
        if threshold < cursor:
            return outcome
    return table[-1][0]
