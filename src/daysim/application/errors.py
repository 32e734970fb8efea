from __future__ import annotations


PROGRESSION_CAP_REACHED = "PROGRESSION_CAP_REACHED"
DUPLICATE_ACTION = "DUPLICATE_ACTION"
STEP_EXPIRED = "STEP_EXPIRED"
NOT_IN_TODAYS_PAIR = "NOT_IN_TODAYS_PAIR"
BOOST_ALREADY_SENT = "BOOST_ALREADY_SENT"
DAY_ALREADY_COMPLETE = "DAY_ALREADY_COMPLETE"
INSUFFICIENT_RESOURCES_PREFIX = "INSUFFICIENT_RESOURCES"


class ArcActionError(ValueError):
    """Missing arc entity or a request that cannot apply to its current state."""


class ArcTransitionError(ArcActionError):
    pass


class ContentIntegrityError(ValueError):
    pass


class DailyRunError(ValueError):
    def __init__(self, reason: str, message: str = "") -> None:
        super().__init__(message or reason)
        self.reason = reason


def insufficient_resources_reason(resource_key: str) -> str:
    return f"{INSUFFICIENT_RESOURCES_PREFIX}:{resource_key}"


def describe_rejection(reason: str) -> str:
    if reason.startswith(f"{INSUFFICIENT_RESOURCES_PREFIX}:"):
        resource_key = reason.split(":", 1)[1]
        return f"Not enough {resource_key} to take this option."
    if reason == PROGRESSION_CAP_REACHED:
        return "No progression slots left today. Try again tomorrow."
    if reason == DUPLICATE_ACTION:
        return "That choice was already recorded."
    if reason == STEP_EXPIRED:
        return "This step has expired."
    if reason == NOT_IN_TODAYS_PAIR:
        return "That storylet is not part of today's run."
    if reason == BOOST_ALREADY_SENT:
        return "You already sent a boost today."
    if reason == DAY_ALREADY_COMPLETE:
        return "This day is already complete."
    return "That action is not available right now."
