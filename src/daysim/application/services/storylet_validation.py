"""Coercion and validation of raw storylet rows.

Rows arrive as loosely typed JSON objects (from the content service, the
cache or the database). Validation reports problems per path; coercion turns
a row into the closed ``Storylet`` model, dropping anything it cannot read.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from daysim.domain.models.storylet import (
    DEFAULT_STORYLET_WEIGHT,
    AudienceRule,
    Check,
    Choice,
    ExperimentRule,
    OutcomeDeltas,
    OutcomeModifier,
    OutcomeOption,
    Requirements,
    Storylet,
    StoryletOutcome,
)


logger = logging.getLogger(__name__)

KNOWN_REQUIREMENT_KEYS = frozenset(
    {
        "min_day_index",
        "max_day_index",
        "requires_tags_any",
        "vectors_min",
        "min_season_index",
        "max_season_index",
        "seasons_any",
        "audience",
    }
)
MAX_BODY_LENGTH = 2000
MAX_OUTCOME_WEIGHT_SUM = 1000


@dataclass(frozen=True)
class ValidationIssue:
    storylet_id: str
    slug: str
    path: str
    message: str


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


class _IssueCollector:
    def __init__(self, row: Mapping[str, Any]) -> None:
        self.storylet_id = row.get("id") if isinstance(row.get("id"), str) else ""
        self.slug = row.get("slug") if isinstance(row.get("slug"), str) else ""
        self.errors: List[ValidationIssue] = []
        self.warnings: List[ValidationIssue] = []

    def error(self, path: str, message: str) -> None:
        self.errors.append(ValidationIssue(self.storylet_id, self.slug, path, message))

    def warn(self, path: str, message: str) -> None:
        self.warnings.append(ValidationIssue(self.storylet_id, self.slug, path, message))


def _validate_outcomes(issues: _IssueCollector, path: str, outcomes: Any) -> None:
    if not isinstance(outcomes, list):
        issues.error(path, "Outcomes must be an array if present")
        return
    if not outcomes:
        issues.error(path, "Outcomes must be non-empty")
        return
    seen: set[str] = set()
    weight_sum = 0.0
    for index, outcome in enumerate(outcomes):
        item_path = f"{path}[{index}]"
        if not isinstance(outcome, Mapping):
            issues.error(item_path, "Outcome is not an object")
            continue
        outcome_id = outcome.get("id")
        if not _is_text(outcome_id):
            issues.error(f"{item_path}.id", "Outcome missing id")
        elif outcome_id in seen:
            issues.error(f"{item_path}.id", "Outcome id must be unique")
        else:
            seen.add(outcome_id)
        weight = outcome.get("weight")
        if not _is_number(weight) or weight <= 0:
            issues.error(f"{item_path}.weight", "Outcome weight must be > 0")
        else:
            weight_sum += weight
        modifiers = outcome.get("modifiers")
        if modifiers is not None:
            if not isinstance(modifiers, Mapping):
                issues.error(f"{item_path}.modifiers", "Modifiers must be an object")
            else:
                if "vector" in modifiers and not isinstance(modifiers["vector"], str):
                    issues.error(f"{item_path}.modifiers.vector", "Modifiers.vector must be a string")
                if "per10" in modifiers and not _is_number(modifiers["per10"]):
                    issues.error(f"{item_path}.modifiers.per10", "Modifiers.per10 must be a number")
        anomalies = outcome.get("anomalies")
        if anomalies is not None and (
            not isinstance(anomalies, list) or any(not isinstance(item, str) for item in anomalies)
        ):
            issues.error(f"{item_path}.anomalies", "Outcome anomalies must be an array of strings")
    if weight_sum > MAX_OUTCOME_WEIGHT_SUM:
        issues.warn(path, "Total outcome weight is unusually high")


def _validate_check(issues: _IssueCollector, path: str, check: Any) -> None:
    if not isinstance(check, Mapping):
        issues.error(path, "Check must be an object")
        return
    if not _is_text(check.get("id")):
        issues.error(f"{path}.id", "Check id must be a string")
    base = check.get("baseChance")
    if not _is_number(base):
        issues.error(f"{path}.baseChance", "Check baseChance must be a number")
    elif base < 0 or base > 1:
        issues.error(f"{path}.baseChance", "Check baseChance must be between 0 and 1")
    for key in ("skillWeights", "postureBonus"):
        if key in check and not isinstance(check[key], Mapping):
            issues.error(f"{path}.{key}", f"Check {key} must be an object")
    for key in ("energyWeight", "stressWeight"):
        if key in check and not _is_number(check[key]):
            issues.error(f"{path}.{key}", f"Check {key} must be a number")


def _validate_requirements(issues: _IssueCollector, req: Mapping[str, Any]) -> None:
    min_season = req.get("min_season_index")
    max_season = req.get("max_season_index")
    if min_season is not None and not _is_number(min_season):
        issues.error("requirements.min_season_index", "requirements.min_season_index must be a number")
    if max_season is not None and not _is_number(max_season):
        issues.error("requirements.max_season_index", "requirements.max_season_index must be a number")
    if _is_number(min_season) and _is_number(max_season) and min_season > max_season:
        issues.error("requirements.min_season_index", "requirements.min_season_index cannot exceed max_season_index")
    seasons_any = req.get("seasons_any")
    if seasons_any is not None and (
        not isinstance(seasons_any, list)
        or any(not isinstance(value, int) or isinstance(value, bool) for value in seasons_any)
    ):
        issues.error("requirements.seasons_any", "requirements.seasons_any must be an array of integers")

    audience = req.get("audience")
    if audience is not None:
        if not isinstance(audience, Mapping):
            issues.error("requirements.audience", "Audience must be an object")
        else:
            pct = audience.get("rollout_pct")
            if pct is not None and (not _is_number(pct) or pct < 0 or pct > 100):
                issues.error("requirements.audience.rollout_pct", "rollout_pct must be a number between 0 and 100")
            allow_admin = audience.get("allow_admin")
            if allow_admin is not None and not isinstance(allow_admin, bool):
                issues.error("requirements.audience.allow_admin", "allow_admin must be a boolean")
            experiment = audience.get("experiment")
            if experiment is not None:
                if not isinstance(experiment, Mapping):
                    issues.error("requirements.audience.experiment", "experiment must be an object")
                else:
                    if not _is_text(experiment.get("id")):
                        issues.error("requirements.audience.experiment.id", "experiment.id must be a string")
                    variants = experiment.get("variants_any")
                    if variants is not None and (
                        not isinstance(variants, list) or any(not isinstance(item, str) for item in variants)
                    ):
                        issues.error(
                            "requirements.audience.experiment.variants_any",
                            "variants_any must be an array of strings",
                        )

    for key in req:
        if key not in KNOWN_REQUIREMENT_KEYS:
            issues.warn(f"requirements.{key}", "Unknown requirements key")


def validate_storylet_issues(row: Any) -> Tuple[List[ValidationIssue], List[ValidationIssue]]:
    if not isinstance(row, Mapping):
        return [ValidationIssue("", "", "storylet", "Storylet is not an object")], []

    issues = _IssueCollector(row)
    for key in ("id", "slug", "title", "body"):
        if not _is_text(row.get(key)):
            issues.error(key, f"Missing {key}")
    body = row.get("body")
    if isinstance(body, str) and len(body) > MAX_BODY_LENGTH:
        issues.warn("body", "Body is unusually long")

    choices = row.get("choices")
    if not isinstance(choices, list):
        issues.error("choices", "Choices must be an array")
    else:
        if not choices:
            issues.error("choices", "Choices must be non-empty")
        seen: set[str] = set()
        for index, choice in enumerate(choices):
            path = f"choices[{index}]"
            if not isinstance(choice, Mapping):
                issues.error(path, "Choice is not an object")
                continue
            choice_id = choice.get("id")
            if not _is_text(choice_id):
                issues.error(f"{path}.id", "Choice missing id")
            elif choice_id in seen:
                issues.error(f"{path}.id", "Choice id must be unique")
            else:
                seen.add(choice_id)
            if not _is_text(choice.get("label")):
                issues.error(f"{path}.label", "Choice missing label")
            outcome = choice.get("outcome")
            if outcome is not None and not isinstance(outcome, Mapping):
                issues.error(f"{path}.outcome", "Outcome must be an object if present")
            if choice.get("outcomes") is not None:
                _validate_outcomes(issues, f"{path}.outcomes", choice["outcomes"])
            if choice.get("check") is not None:
                _validate_check(issues, f"{path}.check", choice["check"])

    requirements = row.get("requirements")
    if isinstance(requirements, Mapping):
        _validate_requirements(issues, requirements)
    elif requirements is not None:
        issues.error("requirements", "Requirements must be an object")

    return issues.errors, issues.warnings


# -- coercion -------------------------------------------------------------


def _int_map(raw: Any) -> dict:
    if not isinstance(raw, Mapping):
        return {}
    return {str(key): int(value) for key, value in raw.items() if _is_number(value)}


def _float_map(raw: Any) -> dict:
    if not isinstance(raw, Mapping):
        return {}
    return {str(key): float(value) for key, value in raw.items() if _is_number(value)}


def _str_tuple(raw: Any) -> Tuple[str, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(item for item in raw if isinstance(item, str))


def _optional_int(raw: Any) -> Optional[int]:
    return int(raw) if _is_number(raw) else None


def _coerce_deltas(raw: Any) -> OutcomeDeltas:
    if not isinstance(raw, Mapping):
        return OutcomeDeltas()
    return OutcomeDeltas(
        energy=int(raw["energy"]) if _is_number(raw.get("energy")) else 0,
        stress=int(raw["stress"]) if _is_number(raw.get("stress")) else 0,
        vectors=_int_map(raw.get("vectors")),
        resources=_int_map(raw.get("resources")),
    )


def _coerce_outcome_option(raw: Any) -> Optional[OutcomeOption]:
    if not isinstance(raw, Mapping) or not _is_text(raw.get("id")) or not _is_number(raw.get("weight")):
        return None
    modifiers = raw.get("modifiers")
    modifier = None
    if isinstance(modifiers, Mapping) and isinstance(modifiers.get("vector"), str) and _is_number(modifiers.get("per10")):
        modifier = OutcomeModifier(vector=modifiers["vector"], per10=float(modifiers["per10"]))
    return OutcomeOption(
        id=raw["id"],
        weight=float(raw["weight"]),
        modifiers=modifier,
        text=raw.get("text") if isinstance(raw.get("text"), str) else "",
        deltas=_coerce_deltas(raw.get("deltas")),
        anomalies=_str_tuple(raw.get("anomalies")),
    )


def _coerce_check(raw: Any) -> Optional[Check]:
    if not isinstance(raw, Mapping) or not _is_text(raw.get("id")) or not _is_number(raw.get("baseChance")):
        return None
    return Check(
        id=raw["id"],
        base_chance=float(raw["baseChance"]),
        skill_weights=_float_map(raw.get("skillWeights")),
        energy_weight=float(raw["energyWeight"]) if _is_number(raw.get("energyWeight")) else 0.0,
        stress_weight=float(raw["stressWeight"]) if _is_number(raw.get("stressWeight")) else 0.0,
        posture_bonus=_float_map(raw.get("postureBonus")),
    )


def _coerce_choice(raw: Any) -> Optional[Choice]:
    if not isinstance(raw, Mapping) or not isinstance(raw.get("id"), str) or not isinstance(raw.get("label"), str):
        return None
    outcome_raw = raw.get("outcome")
    outcome = None
    if isinstance(outcome_raw, Mapping):
        outcome = StoryletOutcome(
            text=outcome_raw.get("text") if isinstance(outcome_raw.get("text"), str) else "",
            deltas=_coerce_deltas(outcome_raw.get("deltas")),
            anomalies=_str_tuple(outcome_raw.get("anomalies")),
        )
    outcomes_raw = raw.get("outcomes") if isinstance(raw.get("outcomes"), list) else []
    outcomes = tuple(option for option in map(_coerce_outcome_option, outcomes_raw) if option is not None)
    return Choice(
        id=raw["id"],
        label=raw["label"],
        outcome=outcome,
        outcomes=outcomes,
        check=_coerce_check(raw.get("check")),
    )


def coerce_requirements(raw: Any) -> Requirements:
    if not isinstance(raw, Mapping):
        return Requirements()
    audience_raw = raw.get("audience")
    audience = None
    if isinstance(audience_raw, Mapping):
        experiment_raw = audience_raw.get("experiment")
        experiment = None
        if isinstance(experiment_raw, Mapping) and _is_text(experiment_raw.get("id")):
            experiment = ExperimentRule(
                experiment_id=experiment_raw["id"],
                variants_any=_str_tuple(experiment_raw.get("variants_any")),
            )
        allow_admin = audience_raw.get("allow_admin")
        audience = AudienceRule(
            rollout_pct=float(audience_raw["rollout_pct"]) if _is_number(audience_raw.get("rollout_pct")) else None,
            experiment=experiment,
            allow_admin=allow_admin if isinstance(allow_admin, bool) else None,
        )
    seasons_any = raw.get("seasons_any")
    return Requirements(
        min_day_index=_optional_int(raw.get("min_day_index")),
        max_day_index=_optional_int(raw.get("max_day_index")),
        requires_tags_any=_str_tuple(raw.get("requires_tags_any")),
        vectors_min=_float_map(raw.get("vectors_min")),
        min_season_index=_optional_int(raw.get("min_season_index")),
        max_season_index=_optional_int(raw.get("max_season_index")),
        seasons_any=tuple(int(value) for value in seasons_any if _is_number(value)) if isinstance(seasons_any, list) else (),
        audience=audience,
    )


def coerce_storylet_row(row: Mapping[str, Any]) -> Storylet:
    choices_raw = row.get("choices") if isinstance(row.get("choices"), list) else []
    weight = row.get("weight")
    return Storylet(
        id=row.get("id") if isinstance(row.get("id"), str) else "",
        slug=row.get("slug") if isinstance(row.get("slug"), str) else "",
        title=row.get("title") if isinstance(row.get("title"), str) else "",
        body=row.get("body") if isinstance(row.get("body"), str) else "",
        choices=tuple(choice for choice in map(_coerce_choice, choices_raw) if choice is not None),
        is_active=bool(row.get("is_active")),
        tags=_str_tuple(row.get("tags")),
        requirements=coerce_requirements(row.get("requirements")),
        weight=float(weight) if _is_number(weight) else DEFAULT_STORYLET_WEIGHT,
        created_at=row.get("created_at") if isinstance(row.get("created_at"), str) else None,
    )


def load_storylets(rows: Iterable[Any]) -> List[Storylet]:
    """Coerce every valid row; rows with validation errors are left out."""
    storylets: List[Storylet] = []
    for row in rows:
        errors, warnings = validate_storylet_issues(row)
        if errors:
            logger.warning(
                "Storylet excluded by content validation",
                extra={
                    "storylet_id": errors[0].storylet_id,
                    "slug": errors[0].slug,
                    "errors": [f"{issue.path}: {issue.message}" for issue in errors],
                },
            )
            continue
        for issue in warnings:
            logger.info("Storylet content warning", extra={"slug": issue.slug, "path": issue.path, "issue": issue.message})
        storylets.append(coerce_storylet_row(row))
    return storylets
