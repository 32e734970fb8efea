from __future__ import annotations

from typing import Dict, Mapping, Optional, Tuple

from daysim.application.dtos import ChoiceResolution
from daysim.application.errors import ContentIntegrityError
from daysim.application.services.check_resolver import CheckResult, resolve_check
from daysim.application.services.outcome_resolver import choose_weighted_outcome
from daysim.application.services.resource_engine import apply_resource_delta_to_snapshot
from daysim.domain.models.resources import ENERGY, STRESS, ResourceSnapshot, clamp
from daysim.domain.models.storylet import Choice, OutcomeDeltas, OutcomeOption, Storylet


def _pick_check_outcome(choice: Choice, result: CheckResult) -> OutcomeOption:
    wanted = "success" if result.success else "failure"
    for outcome in choice.outcomes:
        if outcome.id == wanted:
            return outcome
    index = 0 if result.success else 1
    if index < len(choice.outcomes):
        return choice.outcomes[index]
    return choice.outcomes[0]


def _resolve_outcome(
    user_id: str,
    day_index: int,
    storylet: Storylet,
    choice: Choice,
    snapshot: ResourceSnapshot,
    vectors: Mapping[str, int],
    skills: Mapping[str, int],
    posture: Optional[str],
) -> Tuple[Optional[str], str, OutcomeDeltas, Optional[CheckResult]]:
    if choice.outcome is not None:
        return None, choice.outcome.text, choice.outcome.deltas, None

    if choice.check is not None and choice.outcomes:
        seed = f"{user_id}:{day_index}:{storylet.id}:{choice.id}:{choice.check.id}"
        result = resolve_check(
            choice.check,
            skills,
            {"energy": snapshot.energy, "stress": snapshot.stress},
            posture,
            seed,
        )
        picked = _pick_check_outcome(choice, result)
        return picked.id, picked.text, picked.deltas, result

    if choice.outcomes:
        seed = f"{user_id}:{day_index}:{storylet.id}:{choice.id}"
        picked = choose_weighted_outcome(seed, choice.outcomes, vectors)
        return picked.id, picked.text, picked.deltas, None

    return None, "", OutcomeDeltas(), None


def resolve_choice(
    user_id: str,
    day_index: int,
    storylet: Storylet,
    choice_id: str,
    snapshot: ResourceSnapshot,
    vectors: Mapping[str, int],
    skills: Mapping[str, int] | None = None,
    posture: Optional[str] = None,
) -> ChoiceResolution:
    """Resolve one storylet choice into its outcome and the resulting state."""
    choice = storylet.choice(choice_id)
    if choice is None:
        raise ContentIntegrityError(f"Storylet {storylet.id} has no choice {choice_id}")

    outcome_id, text, deltas, check = _resolve_outcome(
        user_id, day_index, storylet, choice, snapshot, vectors, skills or {}, posture
    )

    requested: Dict[str, int] = dict(deltas.resources)
    if deltas.energy:
        requested[ENERGY] = requested.get(ENERGY, 0) + deltas.energy
    if deltas.stress:
        requested[STRESS] = requested.get(STRESS, 0) + deltas.stress
    application = apply_resource_delta_to_snapshot(
        snapshot,
        requested,
        day_index=day_index,
        source=f"storylet:{storylet.id}:{choice.id}",
    )

    next_vectors = dict(vectors)
    for key, delta in deltas.vectors.items():
        next_vectors[key] = clamp(next_vectors.get(key, 0) + int(delta), 0, 100)

    return ChoiceResolution(
        storylet_id=storylet.id,
        choice_id=choice.id,
        outcome_id=outcome_id,
        text=text,
        snapshot=application.next,
        vectors=next_vectors,
        applied=application.applied,
        check_chance=check.chance if check is not None else None,
        check_success=check.success if check is not None else None,
    )
