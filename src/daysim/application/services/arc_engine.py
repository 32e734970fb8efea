from __future__ import annotations

import os
import re
from dataclasses import dataclass, replace
from typing import Dict, Optional

from daysim.application.errors import ArcTransitionError
from daysim.domain.models.arc import (
    TERMINAL_INSTANCE_STATES,
    ArcInstance,
    ArcInstanceState,
    ArcOffer,
    ArcStep,
    OfferState,
)
from daysim.domain.models.resources import STRESS, ResourceDelta


DEFAULT_PROGRESSION_SLOTS = 2
MAX_OFFERS_PER_DAY = 3
OFFER_LIFETIME_DAYS = 2
DEFAULT_OFFER_KEY = "default"
EXPIRY_BASE_STRESS = 1
ABANDON_STRESS = 1

_BRANCH_KEY_PATTERN = re.compile(r"^branch_(a|b|c)", re.IGNORECASE)


@dataclass(frozen=True)
class HesitationStrainPolicy:
    """Extra stress charged for hesitating on an arc's themes."""

    divisor: int = 2
    max_bump: int = 3

    def bump(self, hesitation: int) -> int:
        if hesitation <= 0:
            return 0
        return min(self.max_bump, int(hesitation) // max(1, self.divisor))

    @classmethod
    def from_env(cls) -> "HesitationStrainPolicy":
        return cls(
            divisor=max(1, int(os.getenv("DAYSIM_HESITATION_DIVISOR", "2"))),
            max_bump=max(0, int(os.getenv("DAYSIM_HESITATION_MAX_BUMP", "3"))),
        )


DEFAULT_STRAIN_POLICY = HesitationStrainPolicy()


def compute_offer_tone(times_shown: int) -> int:
    if times_shown <= 0:
        return 0
    if times_shown == 1:
        return 1
    if times_shown < 4:
        return 2
    return 3


def should_offer_expire(current_day: int, offer: ArcOffer) -> bool:
    return current_day > offer.expires_on_day


def compute_next_due_day(current_day: int, step: ArcStep) -> int:
    return current_day + int(step.due_offset_days or 0)


def compute_arc_expire_day(due_day: int, step: ArcStep) -> int:
    return due_day + int(step.expires_after_days or 0)


def is_step_expired(current_day: int, instance: ArcInstance, step: ArcStep) -> bool:
    return current_day > compute_arc_expire_day(instance.step_due_day, step)


def can_progress_today(
    slots_used: int,
    slots_total: int,
    step_cost_slots: int = 1,
    extra_slots: int = 0,
) -> bool:
    return slots_used + step_cost_slots <= slots_total + max(0, extra_slots)


def apply_disposition_cost(
    tag: str,
    base_cost: ResourceDelta,
    hesitation: int,
    policy: HesitationStrainPolicy = DEFAULT_STRAIN_POLICY,
) -> ResourceDelta:
    """Add hesitation strain for ``tag`` to the stress side of ``base_cost``."""
    bump = policy.bump(hesitation)
    if bump <= 0:
        return base_cost
    resources: Dict[str, int] = dict(base_cost.resources)
    resources[STRESS] = resources.get(STRESS, 0) + bump
    return replace(base_cost, resources=resources)


def expiry_strain(defer_count: int, policy: HesitationStrainPolicy = DEFAULT_STRAIN_POLICY) -> int:
    return EXPIRY_BASE_STRESS + policy.bump(defer_count)


def derive_branch_key(step_key: Optional[str]) -> Optional[str]:
    if not step_key:
        return None
    match = _BRANCH_KEY_PATTERN.match(step_key)
    return match.group(1).lower() if match else None


def new_offer(offer_id: str, user_id: str, arc_id: str, current_day: int) -> ArcOffer:
    return ArcOffer(
        id=offer_id,
        user_id=user_id,
        arc_id=arc_id,
        offer_key=DEFAULT_OFFER_KEY,
        state=OfferState.ACTIVE,
        times_shown=0,
        tone_level=0,
        first_seen_day=current_day,
        last_seen_day=current_day,
        expires_on_day=current_day + OFFER_LIFETIME_DAYS,
    )


def _require_active_offer(offer: ArcOffer, action: str) -> None:
    if offer.state != OfferState.ACTIVE:
        raise ArcTransitionError(f"Cannot {action} offer {offer.id} in state {offer.state.value}.")


def show_offer(offer: ArcOffer, current_day: int) -> ArcOffer:
    _require_active_offer(offer, "show")
    if offer.last_seen_day == current_day:
        return offer
    times_shown = offer.times_shown + 1
    return replace(
        offer,
        times_shown=times_shown,
        tone_level=compute_offer_tone(times_shown),
        last_seen_day=current_day,
    )


def expire_offer(offer: ArcOffer) -> ArcOffer:
    _require_active_offer(offer, "expire")
    return replace(offer, state=OfferState.EXPIRED)


def accept_offer(offer: ArcOffer) -> ArcOffer:
    _require_active_offer(offer, "accept")
    return replace(offer, state=OfferState.ACCEPTED)


def dismiss_offer(offer: ArcOffer) -> ArcOffer:
    _require_active_offer(offer, "dismiss")
    return replace(offer, state=OfferState.DISMISSED)


def start_instance(instance_id: str, offer: ArcOffer, first_step: ArcStep, current_day: int) -> ArcInstance:
    return ArcInstance(
        id=instance_id,
        user_id=offer.user_id,
        arc_id=offer.arc_id,
        state=ArcInstanceState.ACTIVE,
        current_step_key=first_step.step_key,
        step_due_day=compute_next_due_day(current_day, first_step),
        step_defer_count=0,
        started_day=current_day,
        updated_day=current_day,
        branch_key=derive_branch_key(first_step.step_key),
    )


def _require_active_instance(instance: ArcInstance, action: str) -> None:
    if instance.state in TERMINAL_INSTANCE_STATES:
        raise ArcTransitionError(f"Cannot {action} arc instance {instance.id} in state {instance.state.value}.")


def advance_instance(
    instance: ArcInstance,
    next_step: Optional[ArcStep],
    current_day: int,
    branch_key: Optional[str] = None,
) -> ArcInstance:
    _require_active_instance(instance, "advance")
    if next_step is None:
        return replace(
            instance,
            state=ArcInstanceState.COMPLETED,
            branch_key=branch_key,
            updated_day=current_day,
            completed_day=current_day,
        )
    return replace(
        instance,
        current_step_key=next_step.step_key,
        step_due_day=compute_next_due_day(current_day, next_step),
        step_defer_count=0,
        branch_key=branch_key,
        updated_day=current_day,
    )


def defer_instance(instance: ArcInstance, step: ArcStep, current_day: int) -> ArcInstance:
    """Push the current step back one day, or abandon it once deferral runs out."""
    _require_active_instance(instance, "defer")
    next_defer = instance.step_defer_count + 1
    if next_defer > step.expires_after_days or is_step_expired(current_day, instance, step):
        return abandon_instance(replace(instance, step_defer_count=next_defer), current_day, "deferred")
    return replace(instance, step_defer_count=next_defer, updated_day=current_day)


def fail_instance(instance: ArcInstance, current_day: int, reason: str) -> ArcInstance:
    _require_active_instance(instance, "fail")
    return replace(
        instance,
        state=ArcInstanceState.FAILED,
        failure_reason=reason,
        updated_day=current_day,
        completed_day=current_day,
    )


def abandon_instance(instance: ArcInstance, current_day: int, reason: str) -> ArcInstance:
    _require_active_instance(instance, "abandon")
    return replace(
        instance,
        state=ArcInstanceState.ABANDONED,
        failure_reason=reason,
        updated_day=current_day,
        completed_day=current_day,
    )
