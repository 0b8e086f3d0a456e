"""
Red Zone rule store.

Conditions are persisted exactly as submitted (grouped tree or legacy flat
list); resolution conditions become ordered ``red_zone_resolution_criteria``
rows. Field paths are checked against the AvailableFields catalog before
anything is written.
"""

import logging
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import ErrorCode, NotFoundError, ValidationError
from app.models.red_zone import RedZoneAlert, RedZoneResolutionCriterion, RedZoneRule
from app.models.user import User
from app.schemas.red_zone import (
    RedZoneRuleCreate,
    RedZoneRuleResponse,
    RedZoneRuleUpdate,
    ResolutionCondition,
    RuleConditions,
    dump_conditions,
)
from app.services.red_zone.available_fields import get_available_fields, validate_field_paths
from app.services.red_zone.condition_tree import normalize_conditions

logger = logging.getLogger(__name__)


def condition_field_paths(conditions: RuleConditions) -> list[str]:
    tree = normalize_conditions(conditions)
    return [c.field for group in tree.groups for c in group.conditions]


def rule_to_response(rule: RedZoneRule) -> RedZoneRuleResponse:
    return RedZoneRuleResponse(
        id=rule.id,
        name=rule.name,
        description=rule.description,
        severity=rule.severity,
        conditions=rule.conditions,
        auto_resolve=rule.auto_resolve,
        resolution_conditions=[ResolutionCondition.model_validate(c) for c in rule.resolution_criteria],
        team_lead_approval_required=rule.team_lead_approval_required,
        notification_message=rule.notification_message,
        enabled=rule.enabled,
        created_by=rule.created_by,
        created_at=rule.created_at,
        updated_at=rule.updated_at,
    )


class RedZoneRuleService:
    """CRUD for Red Zone rules."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _validate_paths(
        self,
        conditions: Optional[RuleConditions],
        resolution_conditions: Optional[list[ResolutionCondition]],
    ) -> None:
        paths = []
        if conditions is not None:
            paths.extend(condition_field_paths(conditions))
        if resolution_conditions:
            paths.extend(c.field_path for c in resolution_conditions)
        if not paths:
            return

        catalog = await get_available_fields(self.db)
        errors = validate_field_paths(paths, catalog)
        if errors:
            raise ValidationError("Rule references unknown fields", errors=errors, code=ErrorCode.UNKNOWN_FIELD)

    @staticmethod
    def _criteria_rows(resolution_conditions: list[ResolutionCondition]) -> list[RedZoneResolutionCriterion]:
        return [
            RedZoneResolutionCriterion(
                position=position,
                field_path=c.field_path,
                operator=c.operator.value,
                value=c.value,
            )
            for position, c in enumerate(resolution_conditions)
        ]

    async def get_rule(self, rule_id: int) -> RedZoneRule:
        result = await self.db.execute(
            select(RedZoneRule)
            .options(selectinload(RedZoneRule.resolution_criteria))
            .where(RedZoneRule.id == rule_id)
        )
        rule = result.scalar_one_or_none()
        if not rule:
            raise NotFoundError("Red Zone rule", rule_id)
        return rule

    async def list_rules(self, enabled: Optional[bool] = None) -> tuple[list[RedZoneRule], int]:
        query = select(RedZoneRule).options(selectinload(RedZoneRule.resolution_criteria))
        count_query = select(func.count()).select_from(RedZoneRule)
        if enabled is not None:
            query = query.where(RedZoneRule.enabled.is_(enabled))
            count_query = count_query.where(RedZoneRule.enabled.is_(enabled))

        total = (await self.db.execute(count_query)).scalar() or 0
        result = await self.db.execute(query.order_by(RedZoneRule.id))
        return list(result.scalars().all()), total

    async def create_rule(self, data: RedZoneRuleCreate, created_by: Optional[User] = None) -> RedZoneRule:
        await self._validate_paths(data.conditions, data.resolution_conditions)

        rule = RedZoneRule(
            name=data.name,
            description=data.description,
            severity=data.severity.value,
            conditions=dump_conditions(data.conditions),
            auto_resolve=data.auto_resolve,
            team_lead_approval_required=data.team_lead_approval_required,
            notification_message=data.notification_message,
            enabled=data.enabled,
            created_by=created_by.id if created_by else None,
        )
        rule.resolution_criteria = self._criteria_rows(data.resolution_conditions)
        self.db.add(rule)
        await self.db.commit()

        logger.info(f"Red Zone rule {rule.id} '{rule.name}' created by {created_by.actor if created_by else 'system'}")
        return await self.get_rule(rule.id)

    async def update_rule(self, rule_id: int, data: RedZoneRuleUpdate) -> RedZoneRule:
        rule = await self.get_rule(rule_id)
        updates = data.model_dump(exclude_unset=True)

        auto_resolve = updates.get("auto_resolve", rule.auto_resolve)
        if "resolution_conditions" in updates:
            criteria_count = len(data.resolution_conditions or [])
        else:
            criteria_count = len(rule.resolution_criteria)
        if auto_resolve and criteria_count == 0:
            raise ValidationError(
                "auto_resolve requires at least one resolution condition",
                errors=[{"field": "resolution_conditions", "message": "At least one condition is required"}],
            )

        await self._validate_paths(
            data.conditions if "conditions" in updates else None,
            data.resolution_conditions if "resolution_conditions" in updates else None,
        )

        if "conditions" in updates:
            if data.conditions is None:
                raise ValidationError(
                    "conditions cannot be null",
                    errors=[{"field": "conditions", "message": "conditions cannot be null"}],
                )
            rule.conditions = dump_conditions(data.conditions)
        if "resolution_conditions" in updates:
            rule.resolution_criteria = self._criteria_rows(data.resolution_conditions or [])

        for field in ("name", "description", "auto_resolve", "team_lead_approval_required",
                      "notification_message", "enabled"):
            if field in updates and (updates[field] is not None or field in ("description", "notification_message")):
                setattr(rule, field, updates[field])
        if updates.get("severity") is not None:
            rule.severity = data.severity.value

        await self.db.commit()
        logger.info(f"Red Zone rule {rule_id} updated: {sorted(updates)}")
        # Reload so onupdate timestamps and replaced criteria are fresh
        self.db.expire(rule)
        return await self.get_rule(rule_id)

    async def toggle_rule(self, rule_id: int) -> RedZoneRule:
        rule = await self.get_rule(rule_id)
        rule.enabled = not rule.enabled
        await self.db.commit()
        logger.info(f"Red Zone rule {rule_id} {'enabled' if rule.enabled else 'disabled'}")
        self.db.expire(rule)
        return await self.get_rule(rule_id)

    async def delete_rule(self, rule_id: int) -> None:
        """Delete a rule. Its alerts are kept with ``rule_id`` cleared."""
        rule = await self.get_rule(rule_id)
        await self.db.execute(
            update(RedZoneAlert).where(RedZoneAlert.rule_id == rule_id).values(rule_id=None)
        )
        await self.db.delete(rule)
        await self.db.commit()
        logger.info(f"Red Zone rule {rule_id} deleted")
