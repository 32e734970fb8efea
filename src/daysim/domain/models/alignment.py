from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


class AlignmentSource(str, Enum):
    ARC_CHOICE = "arc_choice"
    INITIATIVE = "initiative"
    DIRECTIVE = "directive"


FACTION_KEYS: Tuple[str, ...] = (
    "neo_assyrian",
    "dynastic_consortium",
    "templar_remnant",
    "bormann_network",
)

MAX_DELTA_PER_EVENT = 3
MAX_POSITIVE_GAIN_PER_DAY = 3

# Arc option keys that move a faction when chosen.
ARC_CHOICE_ALIGNMENT_DELTAS: Dict[str, Tuple[str, int]] = {
    "log_it": ("dynastic_consortium", 2),
    "go": ("templar_remnant", 2),
    "test": ("neo_assyrian", 2),
    "burn": ("bormann_network", 2),
}


def is_faction_key(value: str) -> bool:
    return value in FACTION_KEYS


@dataclass(frozen=True)
class UserAlignment:
    user_id: str
    faction_key: str
    score: int = 0


@dataclass(frozen=True)
class AlignmentEvent:
    user_id: str
    day_index: int
    faction_key: str
    delta: int
    source: AlignmentSource
    source_ref: Optional[str] = None
