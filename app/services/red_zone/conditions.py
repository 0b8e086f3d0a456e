"""
Condition Evaluator

Compares one resolved field value against a rule condition. Evaluation is
total: bad input of any kind evaluates to False instead of raising, so a
single odd customer record can never abort a sweep.

Coercion rules:
- equals / not_equals: numeric when both sides are numbers, otherwise the
  trimmed string forms are compared (None -> "", booleans -> "true"/"false")
- greater_than / less_than: numeric, or chronological when both sides are
  dates; anything else is False
- contains / starts_with / ends_with: case-insensitive on the string form
- in_range: value "min,max", inclusive
- UNDEFINED (field missing from the snapshot) never satisfies any operator
"""

import json
import logging
import math
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Callable, Optional

from app.services.red_zone.field_resolver import UNDEFINED

logger = logging.getLogger(__name__)


def to_number(value: Any) -> Optional[float]:
    """Coerce to a finite float, or None."""
    if value is None or value is UNDEFINED or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def to_datetime(value: Any) -> Optional[datetime]:
    """Coerce dates, datetimes and ISO strings to a naive UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_text(value: Any) -> str:
    """Normalized string form used by the string operators."""
    if value is None or value is UNDEFINED:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value).strip()


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict, tuple, set)):
        return len(value) == 0
    return False


def _equals(actual: Any, expected: str) -> bool:
    actual_number = to_number(actual)
    expected_number = to_number(expected)
    if actual_number is not None and expected_number is not None:
        return actual_number == expected_number
    return to_text(actual) == to_text(expected)


def _ordered(actual: Any, expected: str, op: Callable[[Any, Any], bool]) -> bool:
    actual_number = to_number(actual)
    expected_number = to_number(expected)
    if actual_number is not None and expected_number is not None:
        return op(actual_number, expected_number)

    # Only fall back to dates when neither side looked numeric
    if actual_number is None and expected_number is None:
        actual_dt = to_datetime(actual)
        expected_dt = to_datetime(expected)
        if actual_dt is not None and expected_dt is not None:
            return op(actual_dt, expected_dt)
    return False


def _in_range(actual: Any, expected: str) -> bool:
    bounds = [part.strip() for part in (expected or "").split(",")]
    if len(bounds) != 2:
        return False
    low, high = to_number(bounds[0]), to_number(bounds[1])
    number = to_number(actual)
    if low is None or high is None or number is None:
        return False
    return low <= number <= high


def _text_match(actual: Any, expected: str, match: Callable[[str, str], bool]) -> bool:
    if actual is None:
        return False
    return match(to_text(actual).lower(), to_text(expected).lower())


OPERATORS: dict[str, Callable[[Any, str], bool]] = {
    "equals": _equals,
    "not_equals": lambda actual, expected: not _equals(actual, expected),
    "greater_than": lambda actual, expected: _ordered(actual, expected, lambda a, b: a > b),
    "less_than": lambda actual, expected: _ordered(actual, expected, lambda a, b: a < b),
    "contains": lambda actual, expected: _text_match(actual, expected, lambda a, b: b in a),
    "starts_with": lambda actual, expected: _text_match(actual, expected, str.startswith),
    "ends_with": lambda actual, expected: _text_match(actual, expected, str.endswith),
    "is_empty": lambda actual, expected: _is_empty(actual),
    "is_not_empty": lambda actual, expected: not _is_empty(actual),
    "in_range": _in_range,
}


def compare(operator: Any, actual: Any, expected: Any) -> bool:
    """Apply ``operator`` to a resolved value and the condition's literal."""
    if actual is UNDEFINED:
        return False

    op_name = getattr(operator, "value", operator)
    handler = OPERATORS.get(op_name) if isinstance(op_name, str) else None
    if handler is None:
        logger.debug(f"Unknown Red Zone operator '{op_name}' evaluates to False")
        return False

    literal = "" if expected is None else str(expected)
    try:
        return bool(handler(actual, literal))
    except (TypeError, ValueError, ArithmeticError) as e:
        logger.debug(f"Comparison {op_name} failed ({type(e).__name__}); treating as no match")
        return False


def evaluate_condition(condition: Any, resolved_value: Any) -> bool:
    """
    Evaluate a condition (or resolution condition) against an already
    resolved field value.
    """
    return compare(condition.operator, resolved_value, condition.value)
