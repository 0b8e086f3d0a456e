"""
Alert Lifecycle Manager

State machine for Red Zone alerts:

    open -> pending_approval -> resolved
    open -> resolved

``resolved`` is terminal. Escalation and assignment are annotations that do
not change status. Every mutation appends exactly one activity log row; a
rejected call changes nothing.

The manager flushes but never commits; callers own the transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import ForbiddenError, InvalidTransitionError
from app.models.red_zone import RedZoneActivityLog, RedZoneAlert
from app.models.user import User
from app.security.rbac import Permission, check_user_permission

logger = logging.getLogger(__name__)

OPEN = "open"
PENDING_APPROVAL = "pending_approval"
RESOLVED = "resolved"

Actor = Union[User, str]


class InvalidAlertTransition(InvalidTransitionError):
    """The alert's current status does not allow the requested action."""


class AlertPermissionDenied(ForbiddenError):
    """The acting user lacks the permission the action needs."""


def actor_string(actor: Optional[Actor]) -> str:
    """``"user:<id>"`` for users, the string itself for system actors."""
    if actor is None:
        return settings.RED_ZONE_SYSTEM_ACTOR
    if isinstance(actor, User):
        return actor.actor
    return str(actor)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class AlertLifecycleManager:
    """Applies alert transitions and records them in the activity log."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _log(self, alert: RedZoneAlert, action: str, actor: Optional[Actor], details: Optional[dict] = None):
        entry = RedZoneActivityLog(
            alert_id=alert.id,
            action=action,
            performed_by=actor_string(actor),
            details=details or {},
        )
        self.db.add(entry)
        return entry

    def _require_status(self, alert: RedZoneAlert, allowed: set[str], action: str) -> None:
        if alert.status not in allowed:
            raise InvalidAlertTransition(
                f"Cannot {action} alert {alert.id} in status '{alert.status}'"
            )

    async def create_alert(
        self,
        customer_id: int,
        reason: str,
        severity: str,
        rule_id: Optional[int] = None,
        details: Optional[dict] = None,
        actor: Optional[Actor] = None,
        notes: Optional[str] = None,
    ) -> RedZoneAlert:
        """Insert an ``open`` alert and its ``created`` log row."""
        alert = RedZoneAlert(
            customer_id=customer_id,
            rule_id=rule_id,
            reason=reason,
            severity=severity,
            status=OPEN,
            details=details or {},
            notes=notes,
        )
        self.db.add(alert)
        await self.db.flush()

        self._log(alert, "created", actor, {"rule_id": rule_id, "severity": severity})
        await self.db.flush()

        logger.info(f"Red Zone alert {alert.id} created for customer {customer_id} (rule {rule_id})")
        return alert

    async def escalate(
        self, alert: RedZoneAlert, to_user_id: int, actor: Actor, note: Optional[str] = None
    ) -> RedZoneAlert:
        self._require_status(alert, {OPEN, PENDING_APPROVAL}, "escalate")

        previous = alert.escalated_to
        alert.escalated_to = to_user_id
        alert.escalated_at = _now()
        self._log(
            alert,
            "escalated",
            actor,
            {"from_user_id": previous, "to_user_id": to_user_id, "note": note},
        )
        await self.db.flush()
        return alert

    def _mark_resolved(self, alert: RedZoneAlert, actor: Optional[Actor], summary: Optional[str]) -> None:
        alert.status = RESOLVED
        alert.resolved_by = actor_string(actor)
        alert.resolved_at = _now()
        if summary is not None:
            alert.resolution_summary = summary

    async def resolve_manually(self, alert: RedZoneAlert, actor: Actor, summary: str) -> RedZoneAlert:
        """Resolve by hand. An alert awaiting approval needs ``approve_red_zone_resolution``."""
        if alert.status == PENDING_APPROVAL and isinstance(actor, User):
            if not await check_user_permission(self.db, actor, Permission.APPROVE_RED_ZONE_RESOLUTION):
                raise AlertPermissionDenied(
                    f"User {actor.id} may not resolve alert {alert.id} pending approval"
                )
        self._require_status(alert, {OPEN, PENDING_APPROVAL}, "resolve")

        previous = alert.status
        self._mark_resolved(alert, actor, summary)
        self._log(alert, "resolved", actor, {"from_status": previous, "resolution_summary": summary})
        await self.db.flush()
        logger.info(f"Red Zone alert {alert.id} resolved by {alert.resolved_by}")
        return alert

    async def auto_resolve(self, alert: RedZoneAlert, details: Optional[dict] = None) -> RedZoneAlert:
        """Engine-driven resolution once a rule's resolution conditions hold."""
        self._require_status(alert, {OPEN, PENDING_APPROVAL}, "resolve")

        previous = alert.status
        summary = "Resolution conditions met"
        self._mark_resolved(alert, None, summary)
        self._log(alert, "resolved", None, {"from_status": previous, "automatic": True, **(details or {})})
        await self.db.flush()
        return alert

    async def request_approval(
        self, alert: RedZoneAlert, actor: Optional[Actor], details: Optional[dict] = None
    ) -> RedZoneAlert:
        """open -> pending_approval."""
        self._require_status(alert, {OPEN}, "request approval for")

        alert.status = PENDING_APPROVAL
        self._log(
            alert,
            "updated",
            actor,
            {"from_status": OPEN, "to_status": PENDING_APPROVAL, **(details or {})},
        )
        await self.db.flush()
        return alert

    async def approve_resolution(
        self, alert: RedZoneAlert, actor_user: User, summary: Optional[str] = None
    ) -> RedZoneAlert:
        """pending_approval -> resolved; needs ``approve_red_zone_resolution``."""
        if not await check_user_permission(self.db, actor_user, Permission.APPROVE_RED_ZONE_RESOLUTION):
            raise AlertPermissionDenied(
                f"User {actor_user.id} may not approve Red Zone resolutions"
            )
        self._require_status(alert, {PENDING_APPROVAL}, "approve resolution of")

        self._mark_resolved(alert, actor_user, summary or alert.resolution_summary or "Resolution approved")
        self._log(alert, "resolved", actor_user, {"from_status": PENDING_APPROVAL, "approved": True})
        await self.db.flush()
        logger.info(f"Red Zone alert {alert.id} resolution approved by {actor_user.actor}")
        return alert

    async def update_alert(self, alert: RedZoneAlert, actor: Actor, **changes: Any) -> RedZoneAlert:
        """Edit notes / assignment. Unchanged values are not logged; no-op edits log nothing."""
        self._require_status(alert, {OPEN, PENDING_APPROVAL}, "update")

        changed = {}
        for field in ("notes", "assigned_to"):
            if field not in changes:
                continue
            new_value = changes[field]
            old_value = getattr(alert, field)
            if new_value != old_value:
                setattr(alert, field, new_value)
                changed[field] = {"old": old_value, "new": new_value}

        if changed:
            self._log(alert, "updated", actor, {"changes": changed})
            await self.db.flush()
        return alert
