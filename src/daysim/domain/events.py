from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional

from daysim.domain.models.arc import ChoiceLogEventType


@dataclass
class ArcEvent:
    user_id: str
    day: int
    arc_id: str
    arc_instance_id: Optional[str] = None
    step_key: Optional[str] = None
    offer_id: Optional[str] = None
    option_key: Optional[str] = None
    delta: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    event_type: ClassVar[ChoiceLogEventType]


@dataclass
class OfferShown(ArcEvent):
    event_type: ClassVar[ChoiceLogEventType] = ChoiceLogEventType.OFFER_SHOWN


@dataclass
class OfferExpired(ArcEvent):
    event_type: ClassVar[ChoiceLogEventType] = ChoiceLogEventType.OFFER_EXPIRED


@dataclass
class ArcStarted(ArcEvent):
    event_type: ClassVar[ChoiceLogEventType] = ChoiceLogEventType.ARC_STARTED


@dataclass
class StepResolved(ArcEvent):
    event_type: ClassVar[ChoiceLogEventType] = ChoiceLogEventType.STEP_RESOLVED


@dataclass
class StepDeferred(ArcEvent):
    event_type: ClassVar[ChoiceLogEventType] = ChoiceLogEventType.STEP_DEFERRED


@dataclass
class StepExpired(ArcEvent):
    event_type: ClassVar[ChoiceLogEventType] = ChoiceLogEventType.STEP_EXPIRED


@dataclass
class ArcCompleted(ArcEvent):
    event_type: ClassVar[ChoiceLogEventType] = ChoiceLogEventType.ARC_COMPLETED


@dataclass
class ArcFailed(ArcEvent):
    event_type: ClassVar[ChoiceLogEventType] = ChoiceLogEventType.ARC_FAILED


@dataclass
class ArcAbandoned(ArcEvent):
    event_type: ClassVar[ChoiceLogEventType] = ChoiceLogEventType.ARC_ABANDONED


@dataclass
class AlignmentShifted:
    user_id: str
    day_index: int
    faction_key: str
    delta: int
    score_after: int
    source: str
    source_ref: Optional[str] = None
