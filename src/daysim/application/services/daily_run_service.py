from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from daysim.application.dtos import ChoiceResolution, DailyRunView
from daysim.application.errors import (
    BOOST_ALREADY_SENT,
    DAY_ALREADY_COMPLETE,
    DUPLICATE_ACTION,
    NOT_IN_TODAYS_PAIR,
    DailyRunError,
    describe_rejection,
)
from daysim.application.services.allocation_effects import (
    allocation_to_vector_deltas,
    compute_allocation_effect,
    normalize_allocation,
)
from daysim.application.services.daily_stage import (
    is_microtask_eligible,
    resolve_daily_stage,
    runs_for_today_pair,
    should_show_fun_pulse,
)
from daysim.application.services.resource_engine import apply_resource_delta_to_snapshot
from daysim.application.services.seed_policy import build_seed
from daysim.application.services.storylet_play import resolve_choice
from daysim.application.services.storylet_selector import RECENT_WINDOW_DAYS, select_storylets
from daysim.domain.models.daily import DailyRunStage, DayProgress
from daysim.domain.models.resources import RESOURCE_KEYS, ResourceSnapshot, clamp
from daysim.domain.models.storylet import DailyState, Storylet, StoryletContext, StoryletRun, fallback_storylet
from daysim.domain.repositories import DayStateRepository, StoryletCatalogProvider, StoryletRunRepository


logger = logging.getLogger(__name__)


class DailyRunService:
    """Assembles one player's day: today's storylet pair and the loop stage.

    The pair is pinned on the day's progress the first time it is picked so
    that playing the first storylet does not reshuffle the second.
    """

    def __init__(
        self,
        catalog: StoryletCatalogProvider,
        run_repo: StoryletRunRepository,
        day_state_repo: DayStateRepository,
        *,
        season_index: int = 0,
    ) -> None:
        self.catalog = catalog
        self.run_repo = run_repo
        self.day_state_repo = day_state_repo
        self.season_index = int(season_index)

    def _load_snapshot(self, user_id: str, day_index: int) -> ResourceSnapshot:
        snapshot = self.day_state_repo.get_snapshot(user_id, day_index)
        return snapshot if snapshot is not None else ResourceSnapshot()

    def _load_open_progress(self, user_id: str, day_index: int) -> DayProgress:
        progress = self.day_state_repo.get_progress(user_id, day_index)
        if progress.completed:
            raise DailyRunError(DAY_ALREADY_COMPLETE, describe_rejection(DAY_ALREADY_COMPLETE))
        return progress

    @staticmethod
    def _by_id(storylets: List[Storylet]) -> Dict[str, Storylet]:
        return {storylet.id: storylet for storylet in storylets}

    def _pinned_pair(self, progress: DayProgress, catalog: Dict[str, Storylet]) -> List[Storylet]:
        pair = []
        for storylet_id in progress.storylet_ids:
            storylet = catalog.get(storylet_id)
            if storylet is None:
                logger.warning("Pinned storylet %s is no longer in the catalog", storylet_id)
                storylet = fallback_storylet()
            pair.append(storylet)
        return pair

    def todays_storylets(
        self,
        user_id: str,
        day_index: int,
        *,
        season_index: Optional[int] = None,
        forced_storylet_id: Optional[str] = None,
        experiments: Optional[Mapping[str, str]] = None,
        is_admin: bool = False,
        seed: Optional[str] = None,
    ) -> List[Storylet]:
        season = self.season_index if season_index is None else int(season_index)
        storylets = self.catalog.list_storylets(season)
        catalog = self._by_id(storylets)

        progress = self.day_state_repo.get_progress(user_id, day_index)
        if progress.storylet_ids:
            return self._pinned_pair(progress, catalog)

        snapshot = self._load_snapshot(user_id, day_index)
        daily_state = DailyState(
            day_index=day_index,
            energy=snapshot.energy,
            stress=snapshot.stress,
            vectors=dict(progress.vectors),
            posture=progress.posture,
        )
        forced = None
        if forced_storylet_id:
            forced = catalog.get(forced_storylet_id) or next(
                (storylet for storylet in storylets if storylet.slug == forced_storylet_id), None
            )
            if forced is None:
                logger.warning("Forced storylet %s not found", forced_storylet_id)

        recent_runs = self.run_repo.list_runs(user_id, day_index - RECENT_WINDOW_DAYS, day_index)
        picked = select_storylets(
            seed or build_seed(user_id, day_index, "storylets"),
            day_index,
            daily_state,
            storylets,
            recent_runs,
            user_id=user_id,
            season_index=season,
            forced_storylet=forced,
            experiments=experiments,
            is_admin=is_admin,
            context=StoryletContext(posture=progress.posture),
        )
        if picked:
            progress.storylet_ids = [storylet.id for storylet in picked]
            self.day_state_repo.save_progress(progress)
        return picked

    def get_daily_run(
        self,
        user_id: str,
        day_index: int,
        *,
        season_index: Optional[int] = None,
        forced_storylet_id: Optional[str] = None,
        experiments: Optional[Mapping[str, str]] = None,
        is_admin: bool = False,
        microtask_variant: Optional[str] = None,
        seed: Optional[str] = None,
    ) -> DailyRunView:
        season = self.season_index if season_index is None else int(season_index)
        storylets = self.todays_storylets(
            user_id,
            day_index,
            season_index=season,
            forced_storylet_id=forced_storylet_id,
            experiments=experiments,
            is_admin=is_admin,
            seed=seed,
        )
        progress = self.day_state_repo.get_progress(user_id, day_index)
        runs_today = [run for run in self.run_repo.list_runs(user_id, day_index, day_index) if run.day_index == day_index]
        pair_runs = runs_for_today_pair(runs_today, storylets)

        fun_pulse_eligible = should_show_fun_pulse(day_index)
        microtask_eligible = is_microtask_eligible(day_index, microtask_variant)
        stage = resolve_daily_stage(
            setup_needed=not self.day_state_repo.has_completed_setup(user_id),
            allocation_present=progress.allocation is not None,
            runs_for_pair_count=len(pair_runs),
            already_completed_today=progress.completed,
            can_boost=not progress.boost_sent,
            has_storylets=bool(storylets),
            reflection_done=progress.reflection_done,
            micro_task_eligible=microtask_eligible,
            micro_task_done=progress.microtask_done,
            fun_pulse_eligible=fun_pulse_eligible,
            fun_pulse_done=progress.fun_pulse_done,
        )
        return DailyRunView(
            user_id=user_id,
            day_index=day_index,
            stage=stage,
            storylets=storylets,
            runs_today=len(pair_runs),
            snapshot=self._load_snapshot(user_id, day_index),
            fun_pulse_eligible=fun_pulse_eligible,
            microtask_eligible=microtask_eligible,
        )

    def complete_setup(self, user_id: str) -> None:
        self.day_state_repo.mark_setup_complete(user_id)

    def save_allocation(
        self,
        user_id: str,
        day_index: int,
        allocation: Mapping[str, object],
        posture: Optional[str] = None,
    ) -> DayProgress:
        """Apply the day's time allocation.

        Re-submitting the same split changes nothing but the posture. A
        different split swaps the previous split's resource change for the
        new one on top of the current snapshot, so storylet effects applied
        in between are kept.
        """
        progress = self._load_open_progress(user_id, day_index)
        normalized = normalize_allocation(allocation)
        if progress.allocation == normalized:
            if posture is not None and posture != progress.posture:
                progress.posture = posture
                self.day_state_repo.save_progress(progress)
            return progress
        if posture is not None:
            progress.posture = posture

        snapshot = self._load_snapshot(user_id, day_index)
        effect = compute_allocation_effect(normalized, progress.posture, progress.skills)
        requested = effect.to_resources()
        for key, previous in progress.allocation_delta.items():
            requested[key] = requested.get(key, 0) - previous
        application = apply_resource_delta_to_snapshot(
            snapshot,
            requested,
            day_index=day_index,
            source="daily_allocation",
        )
        allocation_delta: Dict[str, int] = {}
        for key in RESOURCE_KEYS:
            moved = application.next.value_of(key) - snapshot.value_of(key) + progress.allocation_delta.get(key, 0)
            if moved:
                allocation_delta[key] = moved

        vectors = dict(progress.vectors)
        if progress.allocation is not None:
            for key, delta in allocation_to_vector_deltas(progress.allocation).items():
                vectors[key] = clamp(vectors.get(key, 0) - delta, 0, 100)
        for key, delta in allocation_to_vector_deltas(normalized).items():
            vectors[key] = clamp(vectors.get(key, 0) + delta, 0, 100)

        progress.allocation = normalized
        progress.allocation_delta = allocation_delta
        progress.vectors = vectors
        self.day_state_repo.save_snapshot(user_id, day_index, application.next)
        self.day_state_repo.save_progress(progress)
        logger.info(
            "Allocation saved",
            extra={"user_id": user_id, "day_index": day_index, "applied": application.applied},
        )
        return progress

    def play_choice(self, user_id: str, day_index: int, storylet_id: str, choice_id: str) -> ChoiceResolution:
        progress = self._load_open_progress(user_id, day_index)
        if storylet_id not in progress.storylet_ids:
            raise DailyRunError(NOT_IN_TODAYS_PAIR, describe_rejection(NOT_IN_TODAYS_PAIR))

        storylet = self._by_id(self.catalog.list_storylets(self.season_index)).get(storylet_id)
        if storylet is None:
            storylet = fallback_storylet()

        resolution = resolve_choice(
            user_id,
            day_index,
            storylet,
            choice_id,
            self._load_snapshot(user_id, day_index),
            progress.vectors,
            progress.skills,
            progress.posture,
        )
        recorded = self.run_repo.record_run(
            StoryletRun(storylet_id=storylet_id, day_index=day_index, choice_id=choice_id, user_id=user_id)
        )
        if not recorded:
            raise DailyRunError(DUPLICATE_ACTION, describe_rejection(DUPLICATE_ACTION))

        self.day_state_repo.save_snapshot(user_id, day_index, resolution.snapshot)
        progress.vectors = dict(resolution.vectors)
        self.day_state_repo.save_progress(progress)
        logger.info(
            "Storylet choice resolved",
            extra={"user_id": user_id, "day_index": day_index, "storylet_id": storylet_id, "choice_id": choice_id},
        )
        return resolution

    def mark_reflection_done(self, user_id: str, day_index: int) -> DayProgress:
        progress = self._load_open_progress(user_id, day_index)
        progress.reflection_done = True
        self.day_state_repo.save_progress(progress)
        return progress

    def mark_microtask_done(self, user_id: str, day_index: int) -> DayProgress:
        progress = self._load_open_progress(user_id, day_index)
        progress.microtask_done = True
        self.day_state_repo.save_progress(progress)
        return progress

    def mark_fun_pulse_done(self, user_id: str, day_index: int) -> DayProgress:
        progress = self._load_open_progress(user_id, day_index)
        progress.fun_pulse_done = True
        self.day_state_repo.save_progress(progress)
        return progress

    def send_boost(self, user_id: str, day_index: int) -> DayProgress:
        progress = self._load_open_progress(user_id, day_index)
        if progress.boost_sent:
            raise DailyRunError(BOOST_ALREADY_SENT, describe_rejection(BOOST_ALREADY_SENT))
        progress.boost_sent = True
        self.day_state_repo.save_progress(progress)
        return progress

    def complete_day(self, user_id: str, day_index: int) -> DayProgress:
        progress = self.day_state_repo.get_progress(user_id, day_index)
        if progress.completed:
            return progress
        progress.completed = True
        self.day_state_repo.save_progress(progress)
        logger.info("Day completed", extra={"user_id": user_id, "day_index": day_index})
        return progress

    def current_stage(self, user_id: str, day_index: int) -> DailyRunStage:
        return self.get_daily_run(user_id, day_index).stage
