from __future__ import annotations

from typing import List, Optional, Sequence

from daysim.domain.models.daily import DailyRunStage
from daysim.domain.models.storylet import Storylet, StoryletRun


FUN_PULSE_EVERY_DAYS = 3


def runs_for_today_pair(runs: Sequence[StoryletRun], storylet_pair: Sequence[Storylet]) -> List[StoryletRun]:
    ids = {storylet.id for storylet in storylet_pair}
    return [run for run in runs if run.storylet_id in ids]


def should_show_fun_pulse(day_index: int) -> bool:
    return day_index > 0 and day_index % FUN_PULSE_EVERY_DAYS == 0


def is_microtask_eligible(day_index: int, variant: Optional[str] = None) -> bool:
    if day_index < 1:
        return False
    if variant == "B":
        return day_index % 3 == 0
    return day_index % 2 == 0


def compute_stage(
    allocation_present: bool,
    runs_for_pair_count: int,
    already_completed_today: bool,
    can_boost: bool,
    has_storylets: bool,
    reflection_done: bool,
    micro_task_eligible: bool,
    micro_task_done: bool,
    fun_pulse_eligible: bool,
    fun_pulse_done: bool,
) -> DailyRunStage:
    """First matching rule wins; the order is the pacing of the day."""
    if not has_storylets:
        return DailyRunStage.COMPLETE
    if already_completed_today:
        return DailyRunStage.COMPLETE
    if not allocation_present:
        return DailyRunStage.ALLOCATION
    if runs_for_pair_count <= 0:
        return DailyRunStage.STORYLET_1
    if runs_for_pair_count == 1:
        return DailyRunStage.STORYLET_2
    if reflection_done and fun_pulse_eligible and not fun_pulse_done:
        return DailyRunStage.FUN_PULSE
    if reflection_done:
        return DailyRunStage.COMPLETE
    if micro_task_eligible and not micro_task_done:
        return DailyRunStage.MICROTASK
    if can_boost:
        return DailyRunStage.SOCIAL
    return DailyRunStage.REFLECTION


def resolve_daily_stage(
    *,
    setup_needed: bool,
    allocation_present: bool,
    runs_for_pair_count: int,
    already_completed_today: bool,
    can_boost: bool,
    has_storylets: bool,
    reflection_done: bool,
    micro_task_eligible: bool,
    micro_task_done: bool,
    fun_pulse_eligible: bool,
    fun_pulse_done: bool,
) -> DailyRunStage:
    if setup_needed and not already_completed_today:
        return DailyRunStage.SETUP
    return compute_stage(
        allocation_present,
        runs_for_pair_count,
        already_completed_today,
        can_boost,
        has_storylets,
        reflection_done,
        micro_task_eligible,
        micro_task_done,
        fun_pulse_eligible,
        fun_pulse_done,
    )
