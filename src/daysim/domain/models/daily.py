from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class DailyRunStage(str, Enum):
    SETUP = "setup"
    ALLOCATION = "allocation"
    STORYLET_1 = "storylet_1"
    STORYLET_2 = "storylet_2"
    MICROTASK = "microtask"
    SOCIAL = "social"
    REFLECTION = "reflection"
    FUN_PULSE = "fun_pulse"
    COMPLETE = "complete"


@dataclass
class DayProgress:
    """What the player has already done on one simulated day."""

    user_id: str
    day_index: int
    allocation: Optional[Dict[str, int]] = None
    allocation_delta: Dict[str, int] = field(default_factory=dict)
    storylet_ids: List[str] = field(default_factory=list)
    vectors: Dict[str, int] = field(default_factory=dict)
    skills: Dict[str, int] = field(default_factory=dict)
    posture: Optional[str] = None
    reflection_done: bool = False
    microtask_done: bool = False
    fun_pulse_done: bool = False
    boost_sent: bool = False
    completed: bool = False
