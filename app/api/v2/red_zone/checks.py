"""
Red Zone evaluation triggers.

- Re-check one customer now (any signed-in user)
- Run a full sweep now (``manage_red_zone_rules``)
"""

import logging

from fastapi import APIRouter, Depends

from app.api.deps import CurrentUser, DbSession
from app.schemas.red_zone import CustomerCheckResponse, SweepResponse
from app.security.rbac import Permission, require_permission
from app.services.red_zone.engine import RedZoneEngine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/customers/{customer_id}/check", response_model=CustomerCheckResponse)
async def check_customer(customer_id: int, db: DbSession, current_user: CurrentUser):
    """Evaluate all enabled rules for one customer."""
    result = await RedZoneEngine(db).check_customer(customer_id)
    return result.to_response()


@router.post(
    "/sweep",
    response_model=SweepResponse,
    dependencies=[Depends(require_permission(Permission.MANAGE_RED_ZONE_RULES))],
)
async def run_sweep(db: DbSession, current_user: CurrentUser):
    """Evaluate all enabled rules for every customer."""
    logger.info(f"Red Zone sweep requested by {current_user.actor}")
    return await RedZoneEngine(db).run_sweep()
