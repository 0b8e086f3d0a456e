"""
Red Zone Rule Engine

Evaluates every enabled rule against a customer snapshot:

1. rule conditions match and no open alert exists -> create an ``open`` alert
2. a non-match never closes an alert
3. ``auto_resolve`` rules whose resolution conditions all hold resolve the
   customer's unresolved alerts for that rule (or move them to
   ``pending_approval`` when team lead approval is required)

Each rule runs in its own savepoint, so a failing rule is logged and
reported without disturbing the others. Sweeps commit after every customer
and can be stopped between customers.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.exceptions import NotFoundError
from app.models.customer import Customer
from app.models.red_zone import RedZoneAlert, RedZoneRule
from app.schemas.red_zone import AvailableField, CustomerCheckResponse, RuleEvaluationError, SweepResponse
from app.services.red_zone.condition_tree import (
    collect_condition_values,
    evaluate_resolution,
    evaluate_tree,
    normalize_conditions,
    normalize_resolution_conditions,
    to_jsonable,
)
from app.services.red_zone.available_fields import get_available_fields, validate_field_paths
from app.services.red_zone.lifecycle import OPEN, PENDING_APPROVAL, RESOLVED, AlertLifecycleManager
from app.services.red_zone.field_resolver import resolve_field
from app.services.red_zone.snapshot import build_customer_snapshot

logger = logging.getLogger(__name__)


class StaleRuleFieldError(ValueError):
    """A rule refers to a field path that is no longer in the AvailableFields catalog."""


@dataclass(frozen=True)
class RuleDefinition:
    """Immutable copy of a rule, read once per pass or sweep."""

    id: int
    name: str
    severity: str
    conditions: Any
    auto_resolve: bool = False
    team_lead_approval_required: bool = False
    notification_message: Optional[str] = None
    resolution_conditions: tuple = ()

    @classmethod
    def from_model(cls, rule: RedZoneRule) -> "RuleDefinition":
        return cls(
            id=rule.id,
            name=rule.name,
            severity=rule.severity,
            conditions=rule.conditions,
            auto_resolve=bool(rule.auto_resolve),
            team_lead_approval_required=bool(rule.team_lead_approval_required),
            notification_message=rule.notification_message,
            resolution_conditions=tuple(
                {"field_path": c.field_path, "operator": c.operator, "value": c.value}
                for c in rule.resolution_criteria
            ),
        )


@dataclass
class CustomerPassResult:
    """What one customer pass did."""

    customer_id: int
    rules_evaluated: int = 0
    matched_rule_ids: list[int] = field(default_factory=list)
    alerts_created: list[int] = field(default_factory=list)
    alerts_resolved: list[int] = field(default_factory=list)
    alerts_pending_approval: list[int] = field(default_factory=list)
    errors: list[tuple[int, str]] = field(default_factory=list)
    in_red_zone: bool = False

    def to_response(self) -> CustomerCheckResponse:
        return CustomerCheckResponse(
            customer_id=self.customer_id,
            rules_evaluated=self.rules_evaluated,
            matched_rule_ids=self.matched_rule_ids,
            alerts_created=self.alerts_created,
            alerts_resolved=self.alerts_resolved,
            alerts_pending_approval=self.alerts_pending_approval,
            errors=[RuleEvaluationError(rule_id=rule_id, error=error) for rule_id, error in self.errors],
            in_red_zone=self.in_red_zone,
        )


class _TemplateValues(dict):
    """format_map mapping that leaves unknown placeholders untouched."""

    def __missing__(self, key):
        return "{" + key + "}"


def render_reason(rule: RuleDefinition, snapshot: Mapping) -> str:
    """
    Alert reason from the rule's notification message.

    ``{customer_name}``, ``{rule_name}``, ``{severity}`` and any top-level
    snapshot key may be used as placeholders.
    """
    template = (rule.notification_message or "").strip()
    if not template:
        return f"Red Zone rule triggered: {rule.name}"

    values = _TemplateValues(
        {key: value for key, value in snapshot.items() if isinstance(key, str)}
    )
    values.update(
        customer_name=snapshot.get("name") or f"Customer {snapshot.get('id')}",
        rule_name=rule.name,
        severity=rule.severity,
    )
    try:
        return template.format_map(values)
    except (ValueError, AttributeError, IndexError, KeyError, TypeError):
        # Message with stray braces; show it as written
        return template


class RedZoneEngine:
    """Runs Red Zone rules for single customers and for sweeps."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.lifecycle = AlertLifecycleManager(db)

    async def load_enabled_rules(self) -> list[RuleDefinition]:
        """Enabled rules, ascending id."""
        result = await self.db.execute(
            select(RedZoneRule)
            .options(selectinload(RedZoneRule.resolution_criteria))
            .where(RedZoneRule.enabled.is_(True))
            .order_by(RedZoneRule.id)
        )
        return [RuleDefinition.from_model(rule) for rule in result.scalars().all()]

    async def _open_alert(self, customer_id: int, rule_id: int) -> Optional[RedZoneAlert]:
        result = await self.db.execute(
            select(RedZoneAlert).where(
                RedZoneAlert.customer_id == customer_id,
                RedZoneAlert.rule_id == rule_id,
                RedZoneAlert.status == OPEN,
            )
        )
        return result.scalars().first()

    async def _unresolved_alerts(self, customer_id: int, rule_id: int) -> list[RedZoneAlert]:
        result = await self.db.execute(
            select(RedZoneAlert)
            .where(
                RedZoneAlert.customer_id == customer_id,
                RedZoneAlert.rule_id == rule_id,
                RedZoneAlert.status.in_([OPEN, PENDING_APPROVAL]),
            )
            .order_by(RedZoneAlert.id)
        )
        return list(result.scalars().all())

    async def _create_alert(self, rule: RuleDefinition, details: dict, snapshot: Mapping) -> Optional[RedZoneAlert]:
        """Insert the alert in a savepoint; a unique violation means a concurrent pass won."""
        try:
            async with self.db.begin_nested():
                return await self.lifecycle.create_alert(
                    customer_id=snapshot["id"],
                    rule_id=rule.id,
                    reason=render_reason(rule, snapshot),
                    severity=rule.severity,
                    details=details,
                    actor=settings.RED_ZONE_SYSTEM_ACTOR,
                )
        except IntegrityError:
            logger.info(
                f"Open alert for customer {snapshot['id']} / rule {rule.id} already exists; skipping"
            )
            return None

    async def _apply_rule(
        self,
        rule: RuleDefinition,
        snapshot: Mapping,
        result: CustomerPassResult,
        catalog: Optional[dict[str, AvailableField]] = None,
    ) -> None:
        customer_id = snapshot["id"]
        tree = normalize_conditions(rule.conditions)

        if catalog is not None:
            paths = [c.field for group in tree.groups for c in group.conditions]
            paths += [c["field_path"] for c in rule.resolution_conditions]
            stale = validate_field_paths(paths, catalog)
            if stale:
                raise StaleRuleFieldError(
                    "Unknown field path(s): " + ", ".join(error["field"] for error in stale)
                )

        if evaluate_tree(tree, snapshot):
            result.matched_rule_ids.append(rule.id)
            if await self._open_alert(customer_id, rule.id) is None:
                details = {
                    "rule_name": rule.name,
                    "field_values": collect_condition_values(tree, snapshot),
                }
                alert = await self._create_alert(rule, details, snapshot)
                if alert is not None:
                    result.alerts_created.append(alert.id)

        if not rule.auto_resolve:
            return

        criteria = normalize_resolution_conditions(rule.resolution_conditions)
        if not evaluate_resolution(criteria, snapshot):
            return

        resolution_values = {
            c.field_path: to_jsonable(resolve_field(snapshot, c.field_path)) for c in criteria
        }
        for alert in await self._unresolved_alerts(customer_id, rule.id):
            if not rule.team_lead_approval_required:
                await self.lifecycle.auto_resolve(alert, {"field_values": resolution_values})
                result.alerts_resolved.append(alert.id)
            elif alert.status == OPEN:
                await self.lifecycle.request_approval(
                    alert,
                    settings.RED_ZONE_SYSTEM_ACTOR,
                    {"reason": "Resolution conditions met", "field_values": resolution_values},
                )
                result.alerts_pending_approval.append(alert.id)

    async def refresh_red_zone_flag(self, customer_id: int) -> bool:
        """Set ``customers.in_red_zone`` to whether any unresolved alert exists."""
        unresolved = await self.db.scalar(
            select(func.count(RedZoneAlert.id)).where(
                RedZoneAlert.customer_id == customer_id,
                RedZoneAlert.status != RESOLVED,
            )
        )
        in_red_zone = bool(unresolved)
        await self.db.execute(
            update(Customer).where(Customer.id == customer_id).values(in_red_zone=in_red_zone)
        )
        return in_red_zone

    async def evaluate_customer(
        self,
        snapshot: Mapping,
        rules: Iterable[RuleDefinition],
        catalog: Optional[dict[str, AvailableField]] = None,
    ) -> CustomerPassResult:
        """
        Run every rule against one snapshot. Does not commit.

        With a ``catalog``, rules referring to unknown field paths are skipped
        and reported in ``errors``.
        """
        result = CustomerPassResult(customer_id=snapshot["id"])

        for rule in rules:
            result.rules_evaluated += 1
            # Collected separately so a rolled-back rule reports nothing
            rule_result = CustomerPassResult(customer_id=result.customer_id)
            try:
                async with self.db.begin_nested():
                    await self._apply_rule(rule, snapshot, rule_result, catalog)
            except StaleRuleFieldError as e:
                logger.warning(f"Red Zone rule {rule.id} skipped for customer {result.customer_id}: {e}")
                result.errors.append((rule.id, f"{type(e).__name__}: {e}"))
                continue
            except Exception as e:
                logger.error(
                    f"Red Zone rule {rule.id} failed for customer {result.customer_id}: {e}",
                    exc_info=True,
                )
                result.errors.append((rule.id, f"{type(e).__name__}: {e}"))
                continue

            result.matched_rule_ids.extend(rule_result.matched_rule_ids)
            result.alerts_created.extend(rule_result.alerts_created)
            result.alerts_resolved.extend(rule_result.alerts_resolved)
            result.alerts_pending_approval.extend(rule_result.alerts_pending_approval)

        result.in_red_zone = await self.refresh_red_zone_flag(result.customer_id)
        return result

    async def check_customer(self, customer_id: int) -> CustomerPassResult:
        """Evaluate one customer against the current enabled rules and commit."""
        snapshot = await build_customer_snapshot(self.db, customer_id)
        if snapshot is None:
            raise NotFoundError("Customer", customer_id)

        rules = await self.load_enabled_rules()
        catalog = await get_available_fields(self.db)
        result = await self.evaluate_customer(snapshot, rules, catalog)
        await self.db.commit()

        logger.info(
            f"Red Zone check for customer {customer_id}: {len(result.matched_rule_ids)} matched, "
            f"{len(result.alerts_created)} created, {len(result.alerts_resolved)} resolved"
        )
        return result

    async def run_sweep(
        self,
        customer_ids: Optional[Iterable[int]] = None,
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> SweepResponse:
        """
        Evaluate many customers (all by default) in ascending id order.

        Rules are read once at the start. Each customer is committed on its
        own, so an interrupted sweep can simply be run again.
        """
        rules = await self.load_enabled_rules()
        catalog = await get_available_fields(self.db)

        if customer_ids is None:
            id_result = await self.db.execute(select(Customer.id).order_by(Customer.id))
            ids = list(id_result.scalars().all())
        else:
            ids = sorted(set(customer_ids))

        summary = SweepResponse(
            rules_loaded=len(rules),
            customers_processed=0,
            customers_failed=0,
            alerts_created=0,
            alerts_resolved=0,
            alerts_pending_approval=0,
            rule_errors=0,
        )
        logger.info(f"Red Zone sweep starting: {len(rules)} rules, {len(ids)} customers")

        for customer_id in ids:
            if should_continue is not None and not should_continue():
                summary.interrupted = True
                logger.warning(f"Red Zone sweep stopped before customer {customer_id}")
                break

            try:
                snapshot = await build_customer_snapshot(self.db, customer_id)
                if snapshot is None:
                    continue
                result = await self.evaluate_customer(snapshot, rules, catalog)
                await self.db.commit()
            except Exception as e:
                await self.db.rollback()
                summary.customers_failed += 1
                logger.error(f"Red Zone sweep failed for customer {customer_id}: {e}", exc_info=True)
                continue

            summary.customers_processed += 1
            summary.alerts_created += len(result.alerts_created)
            summary.alerts_resolved += len(result.alerts_resolved)
            summary.alerts_pending_approval += len(result.alerts_pending_approval)
            summary.rule_errors += len(result.errors)
            summary.last_customer_id = customer_id

        logger.info(
            f"Red Zone sweep complete. Processed: {summary.customers_processed}, "
            f"Failed: {summary.customers_failed}, Created: {summary.alerts_created}, "
            f"Resolved: {summary.alerts_resolved}, Interrupted: {summary.interrupted}"
        )
        return summary
