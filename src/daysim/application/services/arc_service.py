from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Callable, Dict, List, Mapping, Optional

from daysim.application.dtos import ArcActionResult, DueStep, OfferView, TodayArcState
from daysim.application.errors import (
    DUPLICATE_ACTION,
    PROGRESSION_CAP_REACHED,
    STEP_EXPIRED,
    ArcActionError,
    describe_rejection,
    insufficient_resources_reason,
)
from daysim.application.services import arc_engine
from daysim.application.services.alignment_ledger import AlignmentLedger
from daysim.application.services.arc_engine import HesitationStrainPolicy
from daysim.application.services.event_bus import EventBus
from daysim.application.services.resource_engine import (
    ResourceApplication,
    apply_resource_delta_to_snapshot,
    find_unaffordable_resource,
    merge_costs_and_rewards,
)
from daysim.domain.events import (
    ArcAbandoned,
    ArcCompleted,
    ArcFailed,
    ArcStarted,
    OfferExpired,
    OfferShown,
    StepDeferred,
    StepExpired,
    StepResolved,
)
from daysim.domain.models.arc import (
    ArcDefinition,
    ArcInstance,
    ArcInstanceState,
    ArcOffer,
    ArcStep,
    ChoiceLogEventType,
    NpcRelation,
    OfferState,
    RelationalEffect,
)
from daysim.domain.models.resources import STRESS, ResourceSnapshot
from daysim.domain.repositories import (
    ArcRepository,
    ChoiceLogRepository,
    DayStateRepository,
    DispositionRepository,
    RelationRepository,
)


logger = logging.getLogger(__name__)

STEP_ACTION_PREFIX = "arc_step:"


def _new_id() -> str:
    return uuid.uuid4().hex


def _blocks_new_offer(offer: ArcOffer, arc_id: str, current_day: int) -> bool:
    if offer.arc_id != arc_id:
        return False
    if offer.state == OfferState.ACTIVE:
        return True
    # a dismissal holds until the next day
    return offer.state == OfferState.DISMISSED and offer.last_seen_day >= current_day


class ArcService:
    """Drives arc offers and instances for one player over simulated days.

    State changes are published as arc events; the choice log is written by
    whatever handlers are registered on the bus (see ``register_choice_log_handlers``).
    """

    def __init__(
        self,
        arc_repo: ArcRepository,
        choice_log_repo: ChoiceLogRepository,
        disposition_repo: DispositionRepository,
        relation_repo: RelationRepository,
        day_state_repo: DayStateRepository,
        event_bus: EventBus,
        alignment_ledger: AlignmentLedger | None = None,
        *,
        strain_policy: HesitationStrainPolicy | None = None,
        progression_slots_total: int = arc_engine.DEFAULT_PROGRESSION_SLOTS,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.arc_repo = arc_repo
        self.choice_log_repo = choice_log_repo
        self.disposition_repo = disposition_repo
        self.relation_repo = relation_repo
        self.day_state_repo = day_state_repo
        self.event_bus = event_bus
        self.alignment_ledger = alignment_ledger
        self.strain_policy = strain_policy or arc_engine.DEFAULT_STRAIN_POLICY
        self.progression_slots_total = int(progression_slots_total)
        self._id_factory = id_factory or _new_id

    # -- loading helpers -------------------------------------------------

    def _load_instance(self, user_id: str, arc_instance_id: str) -> ArcInstance:
        instance = self.arc_repo.get_instance(arc_instance_id)
        if instance is None or instance.user_id != user_id:
            raise ArcActionError("Arc instance not found.")
        if not instance.is_active:
            raise ArcActionError("Arc is not active.")
        return instance

    def _load_current_step(self, instance: ArcInstance) -> ArcStep:
        step = self.arc_repo.get_step(instance.arc_id, instance.current_step_key)
        if step is None:
            raise ArcActionError("Step not found.")
        return step

    def _arc_tags(self, arc_id: str) -> tuple[str, ...]:
        arc = self.arc_repo.get_definition(arc_id)
        return arc.tags if arc is not None else ()

    def _load_snapshot(self, user_id: str, day: int) -> ResourceSnapshot:
        snapshot = self.day_state_repo.get_snapshot(user_id, day)
        return snapshot if snapshot is not None else ResourceSnapshot()

    def _apply_resources(
        self,
        user_id: str,
        day: int,
        resources: Mapping[str, int],
        source: str,
    ) -> ResourceApplication:
        snapshot = self._load_snapshot(user_id, day)
        application = apply_resource_delta_to_snapshot(snapshot, resources, day_index=day, source=source)
        if application.applied:
            self.day_state_repo.save_snapshot(user_id, day, application.next)
        return application

    def _bump_dispositions(self, user_id: str, deltas: Mapping[str, int]) -> None:
        for tag, delta in deltas.items():
            if delta:
                self.disposition_repo.adjust_hesitation(user_id, tag, int(delta))

    def _apply_relational_effect(self, user_id: str, effect: RelationalEffect | None) -> Optional[NpcRelation]:
        if effect is None or not effect.npc_key:
            return None
        current = self.relation_repo.get(user_id, effect.npc_key) or NpcRelation(user_id=user_id, npc_key=effect.npc_key)
        updated = NpcRelation(
            user_id=user_id,
            npc_key=effect.npc_key,
            trust=current.trust + int(effect.trust_delta),
            reliability=current.reliability + int(effect.reliability_delta),
            emotional_load=current.emotional_load + int(effect.emotional_load_delta),
        )
        self.relation_repo.save(updated)
        return updated

    def progression_slots_used(self, user_id: str, day: int) -> int:
        return self.day_state_repo.count_actions(user_id, day, STEP_ACTION_PREFIX)

    def _already_logged(self, user_id: str, day: int, event_type: ChoiceLogEventType, instance_id: str, step_key: str) -> bool:
        return any(
            entry.arc_instance_id == instance_id and entry.step_key == step_key
            for entry in self.choice_log_repo.list_for_day(user_id, day, event_type)
        )

    @staticmethod
    def _reject(reason: str, instance: ArcInstance | None = None) -> ArcActionResult:
        return ArcActionResult(accepted=False, reason=reason, message=describe_rejection(reason), instance=instance)

    # -- daily view ------------------------------------------------------

    def get_today_arc_state(
        self,
        user_id: str,
        current_day: int,
        *,
        extra_slots: int = 0,
    ) -> TodayArcState:
        definitions = self.arc_repo.list_definitions()
        def_by_id: Dict[str, ArcDefinition] = {arc.id: arc for arc in definitions}
        instances = self.arc_repo.list_instances(user_id)
        active = [instance for instance in instances if instance.is_active]
        busy_arc_ids = {instance.arc_id for instance in active}
        finished_arc_ids = {instance.arc_id for instance in instances if instance.state == ArcInstanceState.COMPLETED}

        due_steps: List[DueStep] = []
        still_active: List[ArcInstance] = []
        for instance in active:
            step = self.arc_repo.get_step(instance.arc_id, instance.current_step_key)
            if step is None:
                logger.warning(
                    "Arc instance points at a missing step",
                    extra={"arc_instance_id": instance.id, "step_key": instance.current_step_key},
                )
                continue
            if arc_engine.is_step_expired(current_day, instance, step):
                self._expire_instance(instance, current_day)
                continue
            still_active.append(instance)
            arc = def_by_id.get(instance.arc_id)
            if arc is not None and instance.step_due_day <= current_day:
                due_steps.append(
                    DueStep(
                        instance=instance,
                        step=step,
                        arc=arc,
                        expires_on_day=arc_engine.compute_arc_expire_day(instance.step_due_day, step),
                    )
                )

        offers: List[ArcOffer] = []
        for offer in self.arc_repo.list_offers(user_id):
            if offer.state == OfferState.ACTIVE and arc_engine.should_offer_expire(current_day, offer):
                offer = arc_engine.expire_offer(offer)
                self.arc_repo.save_offer(offer)
                self.event_bus.publish(
                    OfferExpired(
                        user_id=user_id,
                        day=current_day,
                        arc_id=offer.arc_id,
                        offer_id=offer.id,
                        meta={"tone_level": offer.tone_level},
                    )
                )
            offers.append(offer)

        for arc in definitions:
            if not arc.is_enabled or arc.id in busy_arc_ids or arc.id in finished_arc_ids:
                continue
            if any(_blocks_new_offer(offer, arc.id, current_day) for offer in offers):
                continue
            created = arc_engine.new_offer(self._id_factory(), user_id, arc.id, current_day)
            self.arc_repo.save_offer(created)
            offers.append(created)

        live_offers = [offer for offer in offers if offer.state == OfferState.ACTIVE]

        shown: List[OfferView] = []
        for offer in sorted(live_offers, key=lambda row: row.last_seen_day)[: arc_engine.MAX_OFFERS_PER_DAY]:
            updated = arc_engine.show_offer(offer, current_day)
            if updated is not offer:
                self.arc_repo.save_offer(updated)
                self.event_bus.publish(
                    OfferShown(
                        user_id=user_id,
                        day=current_day,
                        arc_id=offer.arc_id,
                        offer_id=offer.id,
                        meta={"tone_level": updated.tone_level},
                    )
                )
            arc = def_by_id.get(updated.arc_id)
            if arc is not None:
                shown.append(OfferView(offer=updated, arc=arc))

        return TodayArcState(
            due_steps=due_steps,
            offers=shown,
            active_arcs=still_active,
            progression_slots_total=self.progression_slots_total + max(0, extra_slots),
            progression_slots_used=self.progression_slots_used(user_id, current_day),
        )

    def _expire_instance(self, instance: ArcInstance, current_day: int) -> ArcInstance:
        failed = arc_engine.fail_instance(instance, current_day, "expired")
        self.arc_repo.save_instance(failed)

        strain = arc_engine.expiry_strain(instance.step_defer_count, self.strain_policy)
        self._apply_resources(instance.user_id, current_day, {STRESS: strain}, "arc_step_expired")
        tags = self._arc_tags(instance.arc_id)
        self._bump_dispositions(instance.user_id, {tag: 1 for tag in tags})

        logger.info(
            "Arc step expired",
            extra={"arc_instance_id": instance.id, "step_key": instance.current_step_key, "strain": strain},
        )
        meta = {"reason": "expired", "defer_count": instance.step_defer_count}
        self.event_bus.publish(
            StepExpired(
                user_id=instance.user_id,
                day=current_day,
                arc_id=instance.arc_id,
                arc_instance_id=instance.id,
                step_key=instance.current_step_key,
                delta={"resources": {STRESS: strain}},
                meta=meta,
            )
        )
        self.event_bus.publish(
            ArcFailed(
                user_id=instance.user_id,
                day=current_day,
                arc_id=instance.arc_id,
                arc_instance_id=instance.id,
                step_key=instance.current_step_key,
                meta=meta,
            )
        )
        return failed

    # -- offers ----------------------------------------------------------

    def _load_offer(self, user_id: str, offer_id: str) -> ArcOffer:
        offer = self.arc_repo.get_offer(offer_id)
        if offer is None or offer.user_id != user_id:
            raise ArcActionError("Offer not found.")
        if offer.state != OfferState.ACTIVE:
            raise ArcActionError("Offer is not active.")
        return offer

    def accept_offer(self, user_id: str, current_day: int, offer_id: str) -> ArcActionResult:
        offer = self._load_offer(user_id, offer_id)
        if arc_engine.should_offer_expire(current_day, offer):
            self.arc_repo.save_offer(arc_engine.expire_offer(offer))
            self.event_bus.publish(
                OfferExpired(user_id=user_id, day=current_day, arc_id=offer.arc_id, offer_id=offer.id)
            )
            raise ArcActionError("Offer has expired.")

        if any(
            instance.arc_id == offer.arc_id and instance.is_active
            for instance in self.arc_repo.list_instances(user_id)
        ):
            raise ArcActionError("Arc is already in progress.")

        steps = sorted(self.arc_repo.list_steps(offer.arc_id), key=lambda step: step.order_index)
        if not steps:
            raise ArcActionError("Arc has no steps.")

        instance = arc_engine.start_instance(self._id_factory(), offer, steps[0], current_day)
        self.arc_repo.save_instance(instance)
        self.arc_repo.save_offer(arc_engine.accept_offer(offer))

        logger.info("Arc started", extra={"arc_id": offer.arc_id, "arc_instance_id": instance.id})
        self.event_bus.publish(
            ArcStarted(
                user_id=user_id,
                day=current_day,
                arc_id=offer.arc_id,
                arc_instance_id=instance.id,
                step_key=instance.current_step_key,
                offer_id=offer.id,
                meta={"tone_level": offer.tone_level},
            )
        )
        return ArcActionResult(accepted=True, instance=instance)

    def dismiss_offer(self, user_id: str, current_day: int, offer_id: str) -> ArcActionResult:
        offer = self._load_offer(user_id, offer_id)
        self.arc_repo.save_offer(replace(arc_engine.dismiss_offer(offer), last_seen_day=current_day))
        logger.info("Arc offer dismissed", extra={"arc_id": offer.arc_id, "offer_id": offer.id, "day": current_day})
        return ArcActionResult(accepted=True)

    # -- steps -----------------------------------------------------------

    def resolve_step(
        self,
        user_id: str,
        current_day: int,
        arc_instance_id: str,
        option_key: str,
        *,
        expected_step_key: Optional[str] = None,
        extra_slots: int = 0,
    ) -> ArcActionResult:
        instance = self._load_instance(user_id, arc_instance_id)
        step = self._load_current_step(instance)

        if expected_step_key is not None and expected_step_key != instance.current_step_key:
            return self._reject(DUPLICATE_ACTION, instance)
        if self._already_logged(user_id, current_day, ChoiceLogEventType.STEP_RESOLVED, instance.id, step.step_key):
            return self._reject(DUPLICATE_ACTION, instance)
        if arc_engine.is_step_expired(current_day, instance, step):
            return self._reject(STEP_EXPIRED, instance)
        if not arc_engine.can_progress_today(
            self.progression_slots_used(user_id, current_day),
            self.progression_slots_total,
            extra_slots=extra_slots,
        ):
            return self._reject(PROGRESSION_CAP_REACHED, instance)

        option = step.option(option_key)
        if option is None:
            raise ArcActionError("Option not found.")

        snapshot = self._load_snapshot(user_id, current_day)
        missing = find_unaffordable_resource(snapshot, option.costs)
        if missing is not None:
            return self._reject(insufficient_resources_reason(missing), instance)
        if not self.day_state_repo.record_action(user_id, current_day, f"{STEP_ACTION_PREFIX}{instance.id}:{step.step_key}"):
            return self._reject(DUPLICATE_ACTION, instance)

        combined = merge_costs_and_rewards(option.costs, option.rewards)
        hesitation_snapshot: Dict[str, int] = {}
        for tag in self._arc_tags(instance.arc_id):
            hesitation = self.disposition_repo.get_hesitation(user_id, tag)
            hesitation_snapshot[tag] = hesitation
            combined = arc_engine.apply_disposition_cost(tag, combined, hesitation, self.strain_policy)

        self._bump_dispositions(user_id, combined.dispositions)
        application = self._apply_resources(user_id, current_day, combined.resources, "arc_step_resolved")
        relation = self._apply_relational_effect(user_id, option.relational_effects)
        if self.alignment_ledger is not None:
            self.alignment_ledger.apply_arc_choice(
                user_id,
                current_day,
                option.option_key,
                source_ref=f"{instance.id}:{step.step_key}",
            )

        next_key = option.next_step_key or step.default_next_step_key
        next_step = self.arc_repo.get_step(instance.arc_id, next_key) if next_key else None
        branch_key = instance.branch_key or arc_engine.derive_branch_key(next_key)
        updated = arc_engine.advance_instance(instance, next_step, current_day, branch_key)
        self.arc_repo.save_instance(updated)

        meta: Dict[str, object] = {"branch_key": branch_key, "hesitation_snapshot": hesitation_snapshot}
        if relation is not None:
            meta["relation"] = {"npc_key": relation.npc_key, **relation.to_dict()}
        self.event_bus.publish(
            StepResolved(
                user_id=user_id,
                day=current_day,
                arc_id=instance.arc_id,
                arc_instance_id=instance.id,
                step_key=step.step_key,
                option_key=option.option_key,
                delta=combined.to_dict(),
                meta=meta,
            )
        )
        if updated.state == ArcInstanceState.COMPLETED:
            logger.info("Arc completed", extra={"arc_id": instance.arc_id, "arc_instance_id": instance.id})
            self.event_bus.publish(
                ArcCompleted(
                    user_id=user_id,
                    day=current_day,
                    arc_id=instance.arc_id,
                    arc_instance_id=instance.id,
                    meta={"branch_key": branch_key},
                )
            )

        return ArcActionResult(
            accepted=True,
            instance=updated,
            snapshot=application.next,
            applied=application.applied,
        )

    def defer_step(self, user_id: str, current_day: int, arc_instance_id: str) -> ArcActionResult:
        instance = self._load_instance(user_id, arc_instance_id)
        step = self._load_current_step(instance)
        if self._already_logged(user_id, current_day, ChoiceLogEventType.STEP_DEFERRED, instance.id, step.step_key):
            return self._reject(DUPLICATE_ACTION, instance)

        updated = arc_engine.defer_instance(instance, step, current_day)
        self.arc_repo.save_instance(updated)

        if updated.state == ArcInstanceState.ABANDONED:
            self._settle_abandonment(updated, current_day, "deferred")
            return ArcActionResult(accepted=True, instance=updated)

        self.event_bus.publish(
            StepDeferred(
                user_id=user_id,
                day=current_day,
                arc_id=instance.arc_id,
                arc_instance_id=instance.id,
                step_key=instance.current_step_key,
                meta={"defer_count": updated.step_defer_count},
            )
        )
        return ArcActionResult(accepted=True, instance=updated)

    def abandon_arc(self, user_id: str, current_day: int, arc_instance_id: str) -> ArcActionResult:
        instance = self._load_instance(user_id, arc_instance_id)
        updated = arc_engine.abandon_instance(instance, current_day, "abandoned")
        self.arc_repo.save_instance(updated)
        self._settle_abandonment(updated, current_day, "abandoned")
        return ArcActionResult(accepted=True, instance=updated)

    def _settle_abandonment(self, instance: ArcInstance, current_day: int, reason: str) -> None:
        application = self._apply_resources(
            instance.user_id,
            current_day,
            {STRESS: arc_engine.ABANDON_STRESS},
            "arc_abandoned_penalty",
        )
        self._bump_dispositions(instance.user_id, {tag: 1 for tag in self._arc_tags(instance.arc_id)})
        logger.info("Arc abandoned", extra={"arc_instance_id": instance.id, "reason": reason})
        self.event_bus.publish(
            ArcAbandoned(
                user_id=instance.user_id,
                day=current_day,
                arc_id=instance.arc_id,
                arc_instance_id=instance.id,
                step_key=instance.current_step_key,
                delta={"resources": dict(application.applied)},
                meta={
                    "reason": reason,
                    "branch_key": instance.branch_key,
                    "defer_count": instance.step_defer_count,
                },
            )
        )
