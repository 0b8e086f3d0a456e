"""
Condition Group Evaluator

Two-level boolean expression: a tree of groups, each group a list of
conditions, each level folded with AND/OR.

Rules written before condition groups existed store a flat list of
conditions. ``normalize_conditions`` is the only place that knows about that
encoding: it turns the list into one AND group under an AND tree.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping

from pydantic import ValidationError as PydanticValidationError, TypeAdapter

from app.schemas.red_zone import (
    Condition,
    ConditionGroup,
    ConditionTree,
    LogicOperator,
    ResolutionCondition,
)
from app.services.red_zone.conditions import evaluate_condition
from app.services.red_zone.field_resolver import UNDEFINED, resolve_field

_legacy_adapter = TypeAdapter(list[Condition])
_resolution_adapter = TypeAdapter(list[ResolutionCondition])


class MalformedConditionsError(ValueError):
    """Stored conditions JSON does not match either supported shape."""


def normalize_conditions(raw: Any) -> ConditionTree:
    """Convert stored rule conditions (grouped or legacy list) into a ConditionTree."""
    if isinstance(raw, ConditionTree):
        return raw

    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise MalformedConditionsError(f"Conditions are not valid JSON: {e}") from e

    try:
        if isinstance(raw, list):
            conditions = _legacy_adapter.validate_python(raw)
            if not conditions:
                raise MalformedConditionsError("Legacy condition list is empty")
            return ConditionTree(
                logic_operator=LogicOperator.AND,
                groups=[ConditionGroup(logic_operator=LogicOperator.AND, conditions=conditions)],
            )
        if isinstance(raw, Mapping):
            return ConditionTree.model_validate(raw)
    except PydanticValidationError as e:
        raise MalformedConditionsError(f"Invalid conditions: {e.error_count()} error(s)") from e

    raise MalformedConditionsError(f"Unsupported conditions type: {type(raw).__name__}")


def normalize_resolution_conditions(raw: Any) -> list[ResolutionCondition]:
    """Validate stored resolution criteria (ORM rows or dicts)."""
    if raw is None:
        return []
    try:
        return _resolution_adapter.validate_python(
            [
                item if isinstance(item, (Mapping, ResolutionCondition)) else {
                    "field_path": item.field_path,
                    "operator": item.operator,
                    "value": item.value,
                }
                for item in raw
            ]
        )
    except PydanticValidationError as e:
        raise MalformedConditionsError(f"Invalid resolution conditions: {e.error_count()} error(s)") from e


def _fold(operator: LogicOperator, results: Iterable[bool]) -> bool:
    # all()/any() short-circuit; conditions are pure so skipping is safe
    if operator == LogicOperator.OR:
        return any(results)
    return all(results)


def evaluate_group(group: ConditionGroup, snapshot: Mapping) -> bool:
    return _fold(
        group.logic_operator,
        (evaluate_condition(c, resolve_field(snapshot, c.field)) for c in group.conditions),
    )


def evaluate_tree(tree: Any, snapshot: Mapping) -> bool:
    """Evaluate a rule's conditions (any stored shape) against a snapshot."""
    tree = normalize_conditions(tree)
    return _fold(tree.logic_operator, (evaluate_group(g, snapshot) for g in tree.groups))


def evaluate_resolution(conditions: list[ResolutionCondition], snapshot: Mapping) -> bool:
    """
    AND over the resolution conditions.

    An empty list is never satisfied: auto-resolution needs at least one
    explicit condition.
    """
    if not conditions:
        return False
    return all(evaluate_condition(c, resolve_field(snapshot, c.field_path)) for c in conditions)


def to_jsonable(value: Any) -> Any:
    """Make a resolved value safe for the alert ``details`` JSON column."""
    if value is UNDEFINED:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def collect_condition_values(tree: ConditionTree, snapshot: Mapping) -> dict[str, Any]:
    """Field values referenced by a tree, in first-seen order."""
    values: dict[str, Any] = {}
    for group in tree.groups:
        for condition in group.conditions:
            if condition.field not in values:
                values[condition.field] = to_jsonable(resolve_field(snapshot, condition.field))
    return values
