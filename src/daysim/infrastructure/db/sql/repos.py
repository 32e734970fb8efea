import json
import time
import uuid
from dataclasses import asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from daysim.domain.models.alignment import AlignmentEvent, AlignmentSource, UserAlignment
from daysim.domain.models.arc import (
    ArcDefinition,
    ArcInstance,
    ArcInstanceState,
    ArcOffer,
    ArcStep,
    ArcStepOption,
    ChoiceLogEntry,
    ChoiceLogEventType,
    NpcRelation,
    OfferState,
    RelationalEffect,
)
from daysim.domain.models.daily import DayProgress
from daysim.domain.models.resources import ResourceDelta, ResourceSnapshot
from daysim.domain.models.storylet import StoryletRun
from daysim.domain.repositories import (
    AlignmentRepository,
    ArcRepository,
    ChoiceLogRepository,
    DayStateRepository,
    DispositionRepository,
    RelationRepository,
    StoryletRunRepository,
)
from .connection import SessionLocal


def _dialect(session) -> str:
    return session.bind.dialect.name if session.bind is not None else "mysql"


def _upsert_statement(dialect: str, table: str, columns: Sequence[str], key_columns: Sequence[str]):
    """INSERT that overwrites the non-key columns of an existing row."""
    column_list = ", ".join(columns)
    values = ", ".join(f":{column}" for column in columns)
    updates = [column for column in columns if column not in key_columns]
    if dialect == "mysql":
        assignments = ", ".join(f"{column} = VALUES({column})" for column in updates)
        return text(f"INSERT INTO {table} ({column_list}) VALUES ({values}) ON DUPLICATE KEY UPDATE {assignments}")
    assignments = ", ".join(f"{column} = excluded.{column}" for column in updates)
    conflict = ", ".join(key_columns)
    return text(f"INSERT INTO {table} ({column_list}) VALUES ({values}) ON CONFLICT({conflict}) DO UPDATE SET {assignments}")


def _insert_ignore_statement(dialect: str, table: str, columns: Sequence[str]):
    column_list = ", ".join(columns)
    values = ", ".join(f":{column}" for column in columns)
    if dialect == "mysql":
        return text(f"INSERT IGNORE INTO {table} ({column_list}) VALUES ({values})")
    return text(f"INSERT OR IGNORE INTO {table} ({column_list}) VALUES ({values})")


def _loads(raw: Any, default: Any) -> Any:
    if raw is None or raw == "":
        return default
    if isinstance(raw, (dict, list)):
        return raw
    try:
        return json.loads(raw)
    except ValueError:
        return default


def _dumps(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str, sort_keys=True)


# -- arcs -----------------------------------------------------------------


def _option_to_dict(option: ArcStepOption) -> Dict[str, Any]:
    effect = option.relational_effects
    return {
        "option_key": option.option_key,
        "label": option.label,
        "costs": option.costs.to_dict(),
        "rewards": option.rewards.to_dict(),
        "skill_requirement": option.skill_requirement,
        "identity_tags": list(option.identity_tags),
        "relational_effects": asdict(effect) if effect is not None else None,
        "next_step_key": option.next_step_key,
        "outcome_type": option.outcome_type,
    }


def _option_from_dict(payload: Mapping[str, Any]) -> ArcStepOption:
    effect = payload.get("relational_effects")
    return ArcStepOption(
        option_key=str(payload.get("option_key", "")),
        label=str(payload.get("label", "")),
        costs=ResourceDelta.from_mapping(payload.get("costs")),
        rewards=ResourceDelta.from_mapping(payload.get("rewards")),
        skill_requirement=payload.get("skill_requirement"),
        identity_tags=tuple(payload.get("identity_tags") or ()),
        relational_effects=RelationalEffect(**effect) if isinstance(effect, dict) else None,
        next_step_key=payload.get("next_step_key"),
        outcome_type=payload.get("outcome_type"),
    )


def _row_to_offer(row) -> ArcOffer:
    return ArcOffer(
        id=str(row.offer_id),
        user_id=str(row.user_id),
        arc_id=str(row.arc_id),
        offer_key=str(row.offer_key),
        state=OfferState(row.state),
        times_shown=int(row.times_shown),
        tone_level=int(row.tone_level),
        first_seen_day=int(row.first_seen_day),
        last_seen_day=int(row.last_seen_day),
        expires_on_day=int(row.expires_on_day),
    )


def _row_to_instance(row) -> ArcInstance:
    return ArcInstance(
        id=str(row.instance_id),
        user_id=str(row.user_id),
        arc_id=str(row.arc_id),
        state=ArcInstanceState(row.state),
        current_step_key=str(row.current_step_key),
        step_due_day=int(row.step_due_day),
        step_defer_count=int(row.step_defer_count),
        started_day=int(row.started_day),
        updated_day=int(row.updated_day),
        completed_day=int(row.completed_day) if row.completed_day is not None else None,
        failure_reason=row.failure_reason,
        branch_key=row.branch_key,
    )


_OFFER_SELECT = """
    SELECT offer_id, user_id, arc_id, offer_key, state, times_shown, tone_level,
           first_seen_day, last_seen_day, expires_on_day
    FROM arc_offers
"""

_INSTANCE_SELECT = """
    SELECT instance_id, user_id, arc_id, state, current_step_key, step_due_day, step_defer_count,
           started_day, updated_day, completed_day, failure_reason, branch_key
    FROM arc_instances
"""


class SqlArcRepository(ArcRepository):
    def list_definitions(self) -> List[ArcDefinition]:
        with SessionLocal() as session:
            rows = session.execute(
                text(
                    """
                    SELECT arc_id, arc_key, title, description, tags_json, is_enabled
                    FROM arc_definitions
                    ORDER BY arc_key
                    """
                )
            ).all()
            return [
                ArcDefinition(
                    id=str(row.arc_id),
                    key=str(row.arc_key),
                    title=str(row.title),
                    description=row.description or "",
                    tags=tuple(_loads(row.tags_json, [])),
                    is_enabled=bool(row.is_enabled),
                )
                for row in rows
            ]

    def get_definition(self, arc_id: str) -> Optional[ArcDefinition]:
        for arc in self.list_definitions():
            if arc.id == arc_id:
                return arc
        return None

    def list_steps(self, arc_id: str) -> List[ArcStep]:
        with SessionLocal() as session:
            rows = session.execute(
                text(
                    """
                    SELECT step_id, arc_id, step_key, order_index, title, body, options_json,
                           default_next_step_key, due_offset_days, expires_after_days
                    FROM arc_steps
                    WHERE arc_id = :arc_id
                    ORDER BY order_index, step_key
                    """
                ),
                {"arc_id": arc_id},
            ).all()
            return [
                ArcStep(
                    id=str(row.step_id),
                    arc_id=str(row.arc_id),
                    step_key=str(row.step_key),
                    order_index=int(row.order_index),
                    title=str(row.title),
                    body=row.body or "",
                    options=tuple(_option_from_dict(option) for option in _loads(row.options_json, [])),
                    default_next_step_key=row.default_next_step_key,
                    due_offset_days=int(row.due_offset_days),
                    expires_after_days=int(row.expires_after_days),
                )
                for row in rows
            ]

    def save_content(self, definitions: Iterable[ArcDefinition], steps: Iterable[ArcStep]) -> None:
        """Publish arc definitions and their steps, replacing existing rows."""
        with SessionLocal.begin() as session:
            dialect = _dialect(session)
            definition_statement = _upsert_statement(
                dialect,
                "arc_definitions",
                ("arc_id", "arc_key", "title", "description", "tags_json", "is_enabled"),
                ("arc_id",),
            )
            for arc in definitions:
                session.execute(
                    definition_statement,
                    {
                        "arc_id": arc.id,
                        "arc_key": arc.key,
                        "title": arc.title,
                        "description": arc.description,
                        "tags_json": _dumps(list(arc.tags)),
                        "is_enabled": int(arc.is_enabled),
                    },
                )
            step_statement = _upsert_statement(
                dialect,
                "arc_steps",
                (
                    "step_id",
                    "arc_id",
                    "step_key",
                    "order_index",
                    "title",
                    "body",
                    "options_json",
                    "default_next_step_key",
                    "due_offset_days",
                    "expires_after_days",
                ),
                ("step_id",),
            )
            for step in steps:
                session.execute(
                    step_statement,
                    {
                        "step_id": step.id,
                        "arc_id": step.arc_id,
                        "step_key": step.step_key,
                        "order_index": step.order_index,
                        "title": step.title,
                        "body": step.body,
                        "options_json": _dumps([_option_to_dict(option) for option in step.options]),
                        "default_next_step_key": step.default_next_step_key,
                        "due_offset_days": step.due_offset_days,
                        "expires_after_days": step.expires_after_days,
                    },
                )

    def list_offers(self, user_id: str) -> List[ArcOffer]:
        with SessionLocal() as session:
            rows = session.execute(
                text(_OFFER_SELECT + " WHERE user_id = :user_id ORDER BY first_seen_day, offer_id"),
                {"user_id": user_id},
            ).all()
            return [_row_to_offer(row) for row in rows]

    def get_offer(self, offer_id: str) -> Optional[ArcOffer]:
        with SessionLocal() as session:
            row = session.execute(text(_OFFER_SELECT + " WHERE offer_id = :offer_id"), {"offer_id": offer_id}).first()
            return _row_to_offer(row) if row else None

    def save_offer(self, offer: ArcOffer) -> None:
        with SessionLocal.begin() as session:
            statement = _upsert_statement(
                _dialect(session),
                "arc_offers",
                (
                    "offer_id",
                    "user_id",
                    "arc_id",
                    "offer_key",
                    "state",
                    "times_shown",
                    "tone_level",
                    "first_seen_day",
                    "last_seen_day",
                    "expires_on_day",
                ),
                ("offer_id",),
            )
            session.execute(
                statement,
                {
                    "offer_id": offer.id,
                    "user_id": offer.user_id,
                    "arc_id": offer.arc_id,
                    "offer_key": offer.offer_key,
                    "state": offer.state.value,
                    "times_shown": offer.times_shown,
                    "tone_level": offer.tone_level,
                    "first_seen_day": offer.first_seen_day,
                    "last_seen_day": offer.last_seen_day,
                    "expires_on_day": offer.expires_on_day,
                },
            )

    def list_instances(self, user_id: str) -> List[ArcInstance]:
        with SessionLocal() as session:
            rows = session.execute(
                text(_INSTANCE_SELECT + " WHERE user_id = :user_id ORDER BY started_day, instance_id"),
                {"user_id": user_id},
            ).all()
            return [_row_to_instance(row) for row in rows]

    def get_instance(self, instance_id: str) -> Optional[ArcInstance]:
        with SessionLocal() as session:
            row = session.execute(
                text(_INSTANCE_SELECT + " WHERE instance_id = :instance_id"),
                {"instance_id": instance_id},
            ).first()
            return _row_to_instance(row) if row else None

    def save_instance(self, instance: ArcInstance) -> None:
        with SessionLocal.begin() as session:
            statement = _upsert_statement(
                _dialect(session),
                "arc_instances",
                (
                    "instance_id",
                    "user_id",
                    "arc_id",
                    "state",
                    "current_step_key",
                    "step_due_day",
                    "step_defer_count",
                    "started_day",
                    "updated_day",
                    "completed_day",
                    "failure_reason",
                    "branch_key",
                ),
                ("instance_id",),
            )
            session.execute(
                statement,
                {
                    "instance_id": instance.id,
                    "user_id": instance.user_id,
                    "arc_id": instance.arc_id,
                    "state": instance.state.value,
                    "current_step_key": instance.current_step_key,
                    "step_due_day": instance.step_due_day,
                    "step_defer_count": instance.step_defer_count,
                    "started_day": instance.started_day,
                    "updated_day": instance.updated_day,
                    "completed_day": instance.completed_day,
                    "failure_reason": instance.failure_reason,
                    "branch_key": instance.branch_key,
                },
            )


class SqlChoiceLogRepository(ChoiceLogRepository):
    def append(self, entry: ChoiceLogEntry) -> None:
        with SessionLocal.begin() as session:
            session.execute(
                text(
                    """
                    INSERT INTO choice_log (entry_id, user_id, day_index, event_type, arc_id, arc_instance_id,
                                            step_key, offer_id, option_key, delta_json, meta_json, created_at)
                    VALUES (:entry_id, :user_id, :day_index, :event_type, :arc_id, :arc_instance_id,
                            :step_key, :offer_id, :option_key, :delta_json, :meta_json, :created_at)
                    """
                ),
                {
                    "entry_id": uuid.uuid4().hex,
                    "user_id": entry.user_id,
                    "day_index": int(entry.day),
                    "event_type": entry.event_type.value,
                    "arc_id": entry.arc_id,
                    "arc_instance_id": entry.arc_instance_id,
                    "step_key": entry.step_key,
                    "offer_id": entry.offer_id,
                    "option_key": entry.option_key,
                    "delta_json": _dumps(dict(entry.delta)),
                    "meta_json": _dumps(dict(entry.meta)),
                    "created_at": time.time(),
                },
            )

    def list_for_day(
        self,
        user_id: str,
        day: int,
        event_type: Optional[ChoiceLogEventType] = None,
    ) -> List[ChoiceLogEntry]:
        query = """
            SELECT user_id, day_index, event_type, arc_id, arc_instance_id, step_key, offer_id,
                   option_key, delta_json, meta_json
            FROM choice_log
            WHERE user_id = :user_id AND day_index = :day_index
        """
        params: Dict[str, Any] = {"user_id": user_id, "day_index": int(day)}
        if event_type is not None:
            query += " AND event_type = :event_type"
            params["event_type"] = event_type.value
        with SessionLocal() as session:
            rows = session.execute(text(query + " ORDER BY created_at"), params).all()
            return [
                ChoiceLogEntry(
                    user_id=str(row.user_id),
                    day=int(row.day_index),
                    event_type=ChoiceLogEventType(row.event_type),
                    arc_id=row.arc_id,
                    arc_instance_id=row.arc_instance_id,
                    step_key=row.step_key,
                    offer_id=row.offer_id,
                    option_key=row.option_key,
                    delta=_loads(row.delta_json, {}),
                    meta=_loads(row.meta_json, {}),
                )
                for row in rows
            ]


class SqlDispositionRepository(DispositionRepository):
    def get_hesitation(self, user_id: str, tag: str) -> int:
        with SessionLocal() as session:
            value = session.execute(
                text("SELECT hesitation FROM player_dispositions WHERE user_id = :user_id AND tag = :tag"),
                {"user_id": user_id, "tag": tag},
            ).scalar()
            return int(value or 0)

    def adjust_hesitation(self, user_id: str, tag: str, delta: int) -> int:
        with SessionLocal.begin() as session:
            current = session.execute(
                text("SELECT hesitation FROM player_dispositions WHERE user_id = :user_id AND tag = :tag"),
                {"user_id": user_id, "tag": tag},
            ).scalar()
            value = max(0, int(current or 0) + int(delta))
            session.execute(
                _upsert_statement(_dialect(session), "player_dispositions", ("user_id", "tag", "hesitation"), ("user_id", "tag")),
                {"user_id": user_id, "tag": tag, "hesitation": value},
            )
            return value


class SqlRelationRepository(RelationRepository):
    def get(self, user_id: str, npc_key: str) -> Optional[NpcRelation]:
        with SessionLocal() as session:
            row = session.execute(
                text(
                    """
                    SELECT user_id, npc_key, trust, reliability, emotional_load
                    FROM npc_relations
                    WHERE user_id = :user_id AND npc_key = :npc_key
                    """
                ),
                {"user_id": user_id, "npc_key": npc_key},
            ).first()
            if not row:
                return None
            return NpcRelation(
                user_id=str(row.user_id),
                npc_key=str(row.npc_key),
                trust=int(row.trust),
                reliability=int(row.reliability),
                emotional_load=int(row.emotional_load),
            )

    def save(self, relation: NpcRelation) -> None:
        with SessionLocal.begin() as session:
            session.execute(
                _upsert_statement(
                    _dialect(session),
                    "npc_relations",
                    ("user_id", "npc_key", "trust", "reliability", "emotional_load"),
                    ("user_id", "npc_key"),
                ),
                {
                    "user_id": relation.user_id,
                    "npc_key": relation.npc_key,
                    "trust": relation.trust,
                    "reliability": relation.reliability,
                    "emotional_load": relation.emotional_load,
                },
            )


class SqlDayStateRepository(DayStateRepository):
    def get_snapshot(self, user_id: str, day_index: int) -> Optional[ResourceSnapshot]:
        with SessionLocal() as session:
            row = session.execute(
                text(
                    """
                    SELECT energy, stress, knowledge, cash_on_hand, social_leverage, physical_resilience
                    FROM player_day_state
                    WHERE user_id = :user_id AND day_index <= :day_index
                    ORDER BY day_index DESC
                    LIMIT 1
                    """
                ),
                {"user_id": user_id, "day_index": int(day_index)},
            ).first()
            if not row:
                return None
            return ResourceSnapshot(
                energy=int(row.energy),
                stress=int(row.stress),
                knowledge=int(row.knowledge),
                cash_on_hand=int(row.cash_on_hand),
                social_leverage=int(row.social_leverage),
                physical_resilience=int(row.physical_resilience),
            )

    def save_snapshot(self, user_id: str, day_index: int, snapshot: ResourceSnapshot) -> None:
        with SessionLocal.begin() as session:
            session.execute(
                _upsert_statement(
                    _dialect(session),
                    "player_day_state",
                    (
                        "user_id",
                        "day_index",
                        "energy",
                        "stress",
                        "knowledge",
                        "cash_on_hand",
                        "social_leverage",
                        "physical_resilience",
                    ),
                    ("user_id", "day_index"),
                ),
                {
                    "user_id": user_id,
                    "day_index": int(day_index),
                    "energy": snapshot.energy,
                    "stress": snapshot.stress,
                    "knowledge": snapshot.knowledge,
                    "cash_on_hand": snapshot.cash_on_hand,
                    "social_leverage": snapshot.social_leverage,
                    "physical_resilience": snapshot.physical_resilience,
                },
            )

    def record_action(self, user_id: str, day_index: int, action_key: str) -> bool:
        try:
            with SessionLocal.begin() as session:
                session.execute(
                    text(
                        """
                        INSERT INTO resource_applications (user_id, day_index, action_key)
                        VALUES (:user_id, :day_index, :action_key)
                        """
                    ),
                    {"user_id": user_id, "day_index": int(day_index), "action_key": action_key},
                )
        except IntegrityError:
            return False
        return True

    def count_actions(self, user_id: str, day_index: int, prefix: str = "") -> int:
        with SessionLocal() as session:
            value = session.execute(
                text(
                    """
                    SELECT COUNT(*) FROM resource_applications
                    WHERE user_id = :user_id AND day_index = :day_index
                      AND SUBSTR(action_key, 1, :prefix_len) = :prefix
                    """
                ),
                {"user_id": user_id, "day_index": int(day_index), "prefix": prefix, "prefix_len": len(prefix)},
            ).scalar()
            return int(value or 0)

    def get_progress(self, user_id: str, day_index: int) -> DayProgress:
        with SessionLocal() as session:
            row = session.execute(
                text(
                    """
                    SELECT day_index, progress_json
                    FROM day_progress
                    WHERE user_id = :user_id AND day_index <= :day_index
                    ORDER BY day_index DESC
                    LIMIT 1
                    """
                ),
                {"user_id": user_id, "day_index": int(day_index)},
            ).first()
        progress = DayProgress(user_id=user_id, day_index=int(day_index))
        if not row:
            return progress
        payload = _loads(row.progress_json, {})
        if int(row.day_index) == int(day_index):
            known = {key: value for key, value in payload.items() if key in DayProgress.__dataclass_fields__}
            known.update({"user_id": user_id, "day_index": int(day_index)})
            return DayProgress(**known)
        progress.vectors = dict(payload.get("vectors") or {})
        progress.skills = dict(payload.get("skills") or {})
        return progress

    def save_progress(self, progress: DayProgress) -> None:
        with SessionLocal.begin() as session:
            session.execute(
                _upsert_statement(
                    _dialect(session),
                    "day_progress",
                    ("user_id", "day_index", "progress_json"),
                    ("user_id", "day_index"),
                ),
                {
                    "user_id": progress.user_id,
                    "day_index": int(progress.day_index),
                    "progress_json": _dumps(asdict(progress)),
                },
            )

    def has_completed_setup(self, user_id: str) -> bool:
        with SessionLocal() as session:
            row = session.execute(
                text("SELECT user_id FROM player_setup WHERE user_id = :user_id"),
                {"user_id": user_id},
            ).first()
            return row is not None

    def mark_setup_complete(self, user_id: str) -> None:
        with SessionLocal.begin() as session:
            session.execute(_insert_ignore_statement(_dialect(session), "player_setup", ("user_id",)), {"user_id": user_id})


class SqlStoryletRunRepository(StoryletRunRepository):
    def list_runs(self, user_id: str, from_day: int, to_day: int) -> List[StoryletRun]:
        with SessionLocal() as session:
            rows = session.execute(
                text(
                    """
                    SELECT user_id, day_index, storylet_id, choice_id
                    FROM storylet_runs
                    WHERE user_id = :user_id AND day_index BETWEEN :from_day AND :to_day
                    ORDER BY day_index, storylet_id
                    """
                ),
                {"user_id": user_id, "from_day": int(from_day), "to_day": int(to_day)},
            ).all()
            return [
                StoryletRun(
                    storylet_id=str(row.storylet_id),
                    day_index=int(row.day_index),
                    choice_id=row.choice_id,
                    user_id=str(row.user_id),
                )
                for row in rows
            ]

    def record_run(self, run: StoryletRun) -> bool:
        try:
            with SessionLocal.begin() as session:
                session.execute(
                    text(
                        """
                        INSERT INTO storylet_runs (user_id, day_index, storylet_id, choice_id)
                        VALUES (:user_id, :day_index, :storylet_id, :choice_id)
                        """
                    ),
                    {
                        "user_id": run.user_id,
                        "day_index": int(run.day_index),
                        "storylet_id": run.storylet_id,
                        "choice_id": run.choice_id,
                    },
                )
        except IntegrityError:
            return False
        return True


class SqlAlignmentRepository(AlignmentRepository):
    def get(self, user_id: str, faction_key: str) -> Optional[UserAlignment]:
        with SessionLocal() as session:
            row = session.execute(
                text("SELECT score FROM user_alignment WHERE user_id = :user_id AND faction_key = :faction_key"),
                {"user_id": user_id, "faction_key": faction_key},
            ).first()
            if not row:
                return None
            return UserAlignment(user_id=user_id, faction_key=faction_key, score=int(row.score))

    def list_for_user(self, user_id: str) -> List[UserAlignment]:
        with SessionLocal() as session:
            rows = session.execute(
                text("SELECT faction_key, score FROM user_alignment WHERE user_id = :user_id ORDER BY faction_key"),
                {"user_id": user_id},
            ).all()
            return [UserAlignment(user_id=user_id, faction_key=str(row.faction_key), score=int(row.score)) for row in rows]

    def save(self, alignment: UserAlignment) -> None:
        with SessionLocal.begin() as session:
            session.execute(
                _upsert_statement(
                    _dialect(session),
                    "user_alignment",
                    ("user_id", "faction_key", "score"),
                    ("user_id", "faction_key"),
                ),
                {"user_id": alignment.user_id, "faction_key": alignment.faction_key, "score": alignment.score},
            )

    def append_event(self, event: AlignmentEvent) -> None:
        with SessionLocal.begin() as session:
            session.execute(
                text(
                    """
                    INSERT INTO alignment_events (event_id, user_id, day_index, faction_key, delta, source, source_ref)
                    VALUES (:event_id, :user_id, :day_index, :faction_key, :delta, :source, :source_ref)
                    """
                ),
                {
                    "event_id": uuid.uuid4().hex,
                    "user_id": event.user_id,
                    "day_index": int(event.day_index),
                    "faction_key": event.faction_key,
                    "delta": int(event.delta),
                    "source": AlignmentSource(event.source).value,
                    "source_ref": event.source_ref,
                },
            )

    def list_events(self, user_id: str, day_index: int, faction_key: str) -> List[AlignmentEvent]:
        with SessionLocal() as session:
            rows = session.execute(
                text(
                    """
                    SELECT day_index, faction_key, delta, source, source_ref
                    FROM alignment_events
                    WHERE user_id = :user_id AND day_index = :day_index AND faction_key = :faction_key
                    """
                ),
                {"user_id": user_id, "day_index": int(day_index), "faction_key": faction_key},
            ).all()
            return [
                AlignmentEvent(
                    user_id=user_id,
                    day_index=int(row.day_index),
                    faction_key=str(row.faction_key),
                    delta=int(row.delta),
                    source=AlignmentSource(row.source),
                    source_ref=row.source_ref,
                )
                for row in rows
            ]

    def has_event(self, user_id: str, source: str, source_ref: str) -> bool:
        with SessionLocal() as session:
            row = session.execute(
                text(
                    """
                    SELECT event_id FROM alignment_events
                    WHERE user_id = :user_id AND source = :source AND source_ref = :source_ref
                    LIMIT 1
                    """
                ),
                {"user_id": user_id, "source": str(AlignmentSource(source).value), "source_ref": source_ref},
            ).first()
            return row is not None
