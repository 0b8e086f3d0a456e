"""
Red Zone Rule API Endpoints

Read access for any signed-in user; writes need ``manage_red_zone_rules``,
deletes need ``delete_red_zone_rules``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import CurrentUser, DbSession
from app.schemas.red_zone import (
    RedZoneRuleCreate,
    RedZoneRuleListResponse,
    RedZoneRuleResponse,
    RedZoneRuleUpdate,
)
from app.security.rbac import Permission, require_permission
from app.services.red_zone.rules import RedZoneRuleService, rule_to_response

router = APIRouter()


@router.get("", response_model=RedZoneRuleListResponse)
async def list_rules(
    db: DbSession,
    current_user: CurrentUser,
    enabled: Optional[bool] = Query(None),
):
    """List rules, oldest first."""
    rules, total = await RedZoneRuleService(db).list_rules(enabled=enabled)
    return RedZoneRuleListResponse(items=[rule_to_response(r) for r in rules], total=total)


@router.post(
    "",
    response_model=RedZoneRuleResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Permission.MANAGE_RED_ZONE_RULES))],
)
async def create_rule(
    data: RedZoneRuleCreate,
    db: DbSession,
    current_user: CurrentUser,
):
    rule = await RedZoneRuleService(db).create_rule(data, created_by=current_user)
    return rule_to_response(rule)


@router.get("/{rule_id}", response_model=RedZoneRuleResponse)
async def get_rule(rule_id: int, db: DbSession, current_user: CurrentUser):
    rule = await RedZoneRuleService(db).get_rule(rule_id)
    return rule_to_response(rule)


@router.patch(
    "/{rule_id}",
    response_model=RedZoneRuleResponse,
    dependencies=[Depends(require_permission(Permission.MANAGE_RED_ZONE_RULES))],
)
async def update_rule(
    rule_id: int,
    data: RedZoneRuleUpdate,
    db: DbSession,
    current_user: CurrentUser,
):
    rule = await RedZoneRuleService(db).update_rule(rule_id, data)
    return rule_to_response(rule)


@router.post(
    "/{rule_id}/toggle",
    response_model=RedZoneRuleResponse,
    dependencies=[Depends(require_permission(Permission.MANAGE_RED_ZONE_RULES))],
)
async def toggle_rule(rule_id: int, db: DbSession, current_user: CurrentUser):
    """Flip a rule between enabled and disabled."""
    rule = await RedZoneRuleService(db).toggle_rule(rule_id)
    return rule_to_response(rule)


@router.delete(
    "/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission(Permission.DELETE_RED_ZONE_RULES))],
)
async def delete_rule(rule_id: int, db: DbSession, current_user: CurrentUser):
    """Delete a rule; its alerts are kept without a rule reference."""
    await RedZoneRuleService(db).delete_rule(rule_id)
