"""
Red Zone Services

Customer health alerting driven by admin-configured rules:
- Field resolution and condition evaluation over customer snapshots
- Rule engine for single-customer passes and sweeps
- Alert lifecycle (open -> pending_approval -> resolved) with activity log
"""

from app.services.red_zone.field_resolver import UNDEFINED, resolve_field
from app.services.red_zone.conditions import compare, evaluate_condition
from app.services.red_zone.condition_tree import (
    MalformedConditionsError,
    evaluate_group,
    evaluate_resolution,
    evaluate_tree,
    normalize_conditions,
)
from app.services.red_zone.lifecycle import (
    AlertLifecycleManager,
    AlertPermissionDenied,
    InvalidAlertTransition,
)
from app.services.red_zone.engine import CustomerPassResult, RedZoneEngine, RuleDefinition
from app.services.red_zone.rules import RedZoneRuleService

__all__ = [
    "UNDEFINED",
    "resolve_field",
    "compare",
    "evaluate_condition",
    "MalformedConditionsError",
    "evaluate_group",
    "evaluate_resolution",
    "evaluate_tree",
    "normalize_conditions",
    "AlertLifecycleManager",
    "AlertPermissionDenied",
    "InvalidAlertTransition",
    "CustomerPassResult",
    "RedZoneEngine",
    "RuleDefinition",
    "RedZoneRuleService",
]
