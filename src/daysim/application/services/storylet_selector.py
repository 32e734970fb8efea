from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Sequence, Set

from daysim.application.services.seed_policy import hash_string, in_rollout
from daysim.domain.models.storylet import (
    ONBOARDING_TAG,
    DailyState,
    Requirements,
    Storylet,
    StoryletContext,
    StoryletRun,
    fallback_storylet,
)


logger = logging.getLogger(__name__)

PICK_COUNT = 2
RECENT_WINDOW_DAYS = 7
ONBOARDING_LAST_DAY = 3


@dataclass(frozen=True)
class _Gate:
    day_index: int
    season_index: int
    daily_state: Optional[DailyState]
    user_id: str
    experiments: Mapping[str, str]
    is_admin: bool


def meets_season_rules(req: Requirements, season_index: int) -> bool:
    if req.seasons_any and season_index not in req.seasons_any:
        return False
    if req.min_season_index is not None and season_index < req.min_season_index:
        return False
    if req.max_season_index is not None and season_index > req.max_season_index:
        return False
    return True


def meets_requirements(
    storylet: Storylet,
    gate: _Gate,
    *,
    ignore_season: bool = False,
    ignore_audience: bool = False,
) -> bool:
    req = storylet.requirements
    if req.min_day_index is not None and gate.day_index < req.min_day_index:
        return False
    if req.max_day_index is not None and gate.day_index > req.max_day_index:
        return False
    if req.requires_tags_any and not set(storylet.tags).intersection(req.requires_tags_any):
        return False
    if req.vectors_min and gate.daily_state is not None:
        vectors = gate.daily_state.vectors
        for key, minimum in req.vectors_min.items():
            current = vectors.get(key)
            if not isinstance(current, (int, float)) or current < minimum:
                return False
    if not ignore_season and req.has_season_rules() and not meets_season_rules(req, gate.season_index):
        return False

    audience = req.audience
    if not ignore_audience and audience is not None:
        if audience.allow_admin and gate.is_admin:
            return True
        if audience.rollout_pct is not None:
            if not in_rollout(gate.user_id, storylet.id or storylet.slug, audience.rollout_pct):
                return False
        experiment = audience.experiment
        if experiment is not None and experiment.experiment_id and experiment.variants_any:
            assigned = gate.experiments.get(experiment.experiment_id)
            if not assigned or assigned not in experiment.variants_any:
                return False
    return True


def context_bonus(storylet: Storylet, context: Optional[StoryletContext]) -> float:
    if context is None:
        return 0.0
    has = storylet.has_tag
    bonus = 0.0
    posture = context.posture
    if posture == "push" and (has("study") or has("work")):
        bonus += 0.2
    elif posture == "recover" and has("health"):
        bonus += 0.2
    elif posture == "connect" and has("social"):
        bonus += 0.2
    elif posture == "steady" and (has("study") or has("work") or has("social") or has("health")):
        bonus += 0.1

    if "unfinished_assignment" in context.unresolved_tension_keys and has("study"):
        bonus += 0.2
    if "fatigue" in context.unresolved_tension_keys and has("health"):
        bonus += 0.2
    if context.directive_tags and set(storylet.tags).intersection(context.directive_tags):
        bonus += 0.05
    return bonus


def score_storylet(storylet: Storylet, seed: str, context: Optional[StoryletContext] = None) -> float:
    """Lower scores win; a heavier weight shrinks the score."""
    base = hash_string(f"{seed}:{storylet.id}")
    return base / (max(storylet.weight, 1) * (1 + context_bonus(storylet, context)))


def pick_top(
    storylets: Iterable[Storylet],
    seed: str,
    count: int,
    context: Optional[StoryletContext] = None,
) -> List[Storylet]:
    if count <= 0:
        return []
    # sorted() is stable, so equal scores keep input order
    return sorted(storylets, key=lambda storylet: score_storylet(storylet, seed, context))[:count]


class _Picker:
    def __init__(self, seed: str, context: Optional[StoryletContext]) -> None:
        self.seed = seed
        self.context = context
        self.picked: List[Storylet] = []

    @property
    def missing(self) -> int:
        return PICK_COUNT - len(self.picked)

    def fill_from(self, pool: Iterable[Storylet]) -> None:
        wanted = self.missing
        if wanted <= 0:
            return
        taken_ids = {storylet.id for storylet in self.picked}
        remaining = [storylet for storylet in pool if storylet.id not in taken_ids]
        self.picked.extend(pick_top(remaining, self.seed, wanted, self.context))


def select_storylets(
    seed: str,
    day_index: int,
    daily_state: Optional[DailyState],
    all_storylets: Sequence[Storylet],
    recent_runs: Sequence[StoryletRun],
    *,
    user_id: str = "",
    season_index: int = 0,
    forced_storylet: Optional[Storylet] = None,
    experiments: Optional[Mapping[str, str]] = None,
    is_admin: bool = False,
    context: Optional[StoryletContext] = None,
) -> List[Storylet]:
    """Pick today's two storylets.

    Returns ``[]`` when nothing at all can be shown; otherwise always two
    entries, padded with the fallback storylet if the catalog runs dry.
    """
    gate = _Gate(
        day_index=day_index,
        season_index=season_index,
        daily_state=daily_state,
        user_id=user_id,
        experiments=experiments or {},
        is_admin=is_admin,
    )
    today_ids: Set[str] = {run.storylet_id for run in recent_runs if run.day_index == day_index}
    recent_ids: Set[str] = {
        run.storylet_id
        for run in recent_runs
        if day_index - RECENT_WINDOW_DAYS <= run.day_index < day_index
    }

    active = [storylet for storylet in all_storylets if storylet.is_active and storylet.id not in today_ids]
    base_eligible = [storylet for storylet in active if meets_requirements(storylet, gate)]
    preferred = [storylet for storylet in base_eligible if storylet.id not in recent_ids]

    picker = _Picker(seed, context)

    if forced_storylet is not None and forced_storylet.is_active and forced_storylet.id not in today_ids:
        _warn_forced_gating(forced_storylet, gate)
        picker.picked.append(forced_storylet)

    if day_index <= ONBOARDING_LAST_DAY:
        picker.fill_from((storylet for storylet in preferred if storylet.has_tag(ONBOARDING_TAG)))

    picker.fill_from(preferred)
    picker.fill_from(base_eligible)

    if picker.missing > 0 and len(base_eligible) < PICK_COUNT:
        logger.warning("Season gating reduced the storylet pool; widening", extra={"day_index": day_index})
        season_free = [
            storylet
            for storylet in active
            if not storylet.requirements.has_season_rules()
            and not storylet.requirements.has_audience_rules()
            and meets_requirements(storylet, gate, ignore_season=True)
            and storylet.id not in recent_ids
        ]
        picker.fill_from(season_free)
        relaxed = [
            storylet
            for storylet in active
            if meets_requirements(storylet, gate, ignore_season=True) and storylet.id not in recent_ids
        ]
        picker.fill_from(relaxed)

    if picker.missing > 0:
        logger.warning("Audience gating reduced the storylet pool; widening", extra={"day_index": day_index})
        picker.fill_from(
            storylet for storylet in active if meets_requirements(storylet, gate, ignore_season=True, ignore_audience=True)
        )

    picker.fill_from(active)

    if not picker.picked:
        return []
    while picker.missing > 0:
        picker.picked.append(fallback_storylet())
    return picker.picked[:PICK_COUNT]


def _warn_forced_gating(storylet: Storylet, gate: _Gate) -> None:
    req = storylet.requirements
    label = storylet.slug or storylet.id
    if req.has_season_rules() and not meets_season_rules(req, gate.season_index):
        logger.warning("Forced storylet %s excluded by season gating", label)
    if req.has_audience_rules() and not meets_requirements(storylet, gate):
        logger.warning("Forced storylet %s excluded by audience gating", label)
