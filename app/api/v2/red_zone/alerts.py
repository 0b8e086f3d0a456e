"""
Red Zone Alert API Endpoints

Status changes go through the action endpoints (escalate, resolve,
request-approval, approve); each one writes an activity log entry.
"""

from typing import Optional

from fastapi import APIRouter, Query, status as http_status
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from app.api.deps import CurrentUser, DbSession
from app.exceptions import NotFoundError
from app.models.customer import Customer
from app.models.red_zone import RedZoneAlert
from app.models.user import User
from app.schemas.red_zone import (
    AlertStatus,
    ApproveResolutionRequest,
    EscalateAlertRequest,
    RedZoneAlertCreate,
    RedZoneAlertDetailResponse,
    RedZoneAlertListResponse,
    RedZoneAlertResponse,
    RedZoneAlertUpdate,
    RedZoneSeverity,
    RequestApprovalRequest,
    ResolveAlertRequest,
)
from app.services.red_zone.engine import RedZoneEngine
from app.services.red_zone.lifecycle import AlertLifecycleManager

router = APIRouter()


async def get_alert_or_404(db: DbSession, alert_id: int) -> RedZoneAlert:
    result = await db.execute(
        select(RedZoneAlert)
        .options(selectinload(RedZoneAlert.activities))
        .where(RedZoneAlert.id == alert_id)
        .execution_options(populate_existing=True)
    )
    alert = result.scalar_one_or_none()
    if not alert:
        raise NotFoundError("Red Zone alert", alert_id)
    return alert


async def _commit_and_reload(db: DbSession, alert: RedZoneAlert) -> RedZoneAlertDetailResponse:
    await RedZoneEngine(db).refresh_red_zone_flag(alert.customer_id)
    await db.commit()
    alert = await get_alert_or_404(db, alert.id)
    return RedZoneAlertDetailResponse.model_validate(alert)


@router.get("", response_model=RedZoneAlertListResponse)
async def list_alerts(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    customer_id: Optional[int] = None,
    status: Optional[AlertStatus] = None,
    severity: Optional[RedZoneSeverity] = None,
    rule_id: Optional[int] = None,
):
    """List alerts with filtering, newest first."""
    query = select(RedZoneAlert)

    if customer_id:
        query = query.where(RedZoneAlert.customer_id == customer_id)
    if status:
        query = query.where(RedZoneAlert.status == status.value)
    if severity:
        query = query.where(RedZoneAlert.severity == severity.value)
    if rule_id:
        query = query.where(RedZoneAlert.rule_id == rule_id)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    offset = (page - 1) * page_size
    query = query.order_by(RedZoneAlert.id.desc()).offset(offset).limit(page_size)
    result = await db.execute(query)
    alerts = result.scalars().all()

    return RedZoneAlertListResponse(
        items=[RedZoneAlertResponse.model_validate(a) for a in alerts],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=RedZoneAlertDetailResponse, status_code=http_status.HTTP_201_CREATED)
async def create_alert(
    data: RedZoneAlertCreate,
    db: DbSession,
    current_user: CurrentUser,
):
    """Raise an alert by hand for a customer; it has no rule."""
    if not await db.get(Customer, data.customer_id):
        raise NotFoundError("Customer", data.customer_id)

    lifecycle = AlertLifecycleManager(db)
    alert = await lifecycle.create_alert(
        customer_id=data.customer_id,
        reason=data.reason,
        severity=data.severity.value,
        details={"source": "manual"},
        actor=current_user,
        notes=data.notes,
    )
    return await _commit_and_reload(db, alert)


@router.get("/{alert_id}", response_model=RedZoneAlertDetailResponse)
async def get_alert(alert_id: int, db: DbSession, current_user: CurrentUser):
    """Get an alert with its activity log."""
    alert = await get_alert_or_404(db, alert_id)
    return RedZoneAlertDetailResponse.model_validate(alert)


@router.patch("/{alert_id}", response_model=RedZoneAlertDetailResponse)
async def update_alert(
    alert_id: int,
    data: RedZoneAlertUpdate,
    db: DbSession,
    current_user: CurrentUser,
):
    """Update notes or assignment."""
    alert = await get_alert_or_404(db, alert_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("assigned_to") is not None and not await db.get(User, changes["assigned_to"]):
        raise NotFoundError("User", changes["assigned_to"])

    await AlertLifecycleManager(db).update_alert(alert, current_user, **changes)
    return await _commit_and_reload(db, alert)


@router.post("/{alert_id}/escalate", response_model=RedZoneAlertDetailResponse)
async def escalate_alert(
    alert_id: int,
    data: EscalateAlertRequest,
    db: DbSession,
    current_user: CurrentUser,
):
    alert = await get_alert_or_404(db, alert_id)
    if not await db.get(User, data.to_user_id):
        raise NotFoundError("User", data.to_user_id)

    await AlertLifecycleManager(db).escalate(alert, data.to_user_id, current_user, note=data.note)
    return await _commit_and_reload(db, alert)


@router.post("/{alert_id}/resolve", response_model=RedZoneAlertDetailResponse)
async def resolve_alert(
    alert_id: int,
    data: ResolveAlertRequest,
    db: DbSession,
    current_user: CurrentUser,
):
    alert = await get_alert_or_404(db, alert_id)
    await AlertLifecycleManager(db).resolve_manually(alert, current_user, data.resolution_summary)
    return await _commit_and_reload(db, alert)


@router.post("/{alert_id}/request-approval", response_model=RedZoneAlertDetailResponse)
async def request_resolution_approval(
    alert_id: int,
    data: RequestApprovalRequest,
    db: DbSession,
    current_user: CurrentUser,
):
    """Ask a team lead to approve resolving this alert."""
    alert = await get_alert_or_404(db, alert_id)
    details = {"note": data.note} if data.note else None
    await AlertLifecycleManager(db).request_approval(alert, current_user, details)
    return await _commit_and_reload(db, alert)


@router.post("/{alert_id}/approve", response_model=RedZoneAlertDetailResponse)
async def approve_resolution(
    alert_id: int,
    data: ApproveResolutionRequest,
    db: DbSession,
    current_user: CurrentUser,
):
    """Team lead / admin approval of a pending resolution."""
    alert = await get_alert_or_404(db, alert_id)
    await AlertLifecycleManager(db).approve_resolution(alert, current_user, data.resolution_summary)
    return await _commit_and_reload(db, alert)
