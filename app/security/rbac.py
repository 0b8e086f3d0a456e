"""
Role-Based Access Control (RBAC) Module

Pure ``(role, permission) -> bool`` table plus a thin database adapter that
applies the overrides stored in the ``permissions`` table.
"""

from enum import Enum
from typing import Iterable, Optional, Set
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.api.deps import CurrentUser, DbSession
from app.exceptions import ForbiddenError
from app.models.permission import PermissionSetting
from app.models.user import User

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """User roles."""
    ADMIN = "admin"
    TEAM_LEAD = "team_lead"
    CSM = "csm"


class Permission(str, Enum):
    """Fine-grained permissions."""
    VIEW_CUSTOMERS = "view_customers"
    EDIT_CUSTOMERS = "edit_customers"
    DELETE_CUSTOMERS = "delete_customers"
    ASSIGN_CUSTOMERS = "assign_customers"
    VIEW_TASKS = "view_tasks"
    MANAGE_TASKS = "manage_tasks"
    VIEW_REPORTS = "view_reports"
    MANAGE_USERS = "manage_users"
    MANAGE_SETTINGS = "manage_settings"
    MANAGE_INTEGRATIONS = "manage_integrations"
    # Red Zone
    MANAGE_RED_ZONE_RULES = "manage_red_zone_rules"
    DELETE_RED_ZONE_RULES = "delete_red_zone_rules"
    APPROVE_RED_ZONE_RESOLUTION = "approve_red_zone_resolution"


# Default role-to-permissions mapping, used when no PermissionSetting row exists
DEFAULT_ROLE_PERMISSIONS: dict[Role, Set[Permission]] = {
    Role.CSM: {
        Permission.VIEW_CUSTOMERS,
        Permission.EDIT_CUSTOMERS,
        Permission.VIEW_TASKS,
        Permission.MANAGE_TASKS,
    },
    Role.TEAM_LEAD: {
        Permission.VIEW_CUSTOMERS,
        Permission.EDIT_CUSTOMERS,
        Permission.ASSIGN_CUSTOMERS,
        Permission.VIEW_TASKS,
        Permission.MANAGE_TASKS,
        Permission.VIEW_REPORTS,
        Permission.APPROVE_RED_ZONE_RESOLUTION,
    },
    Role.ADMIN: set(Permission),  # All permissions
}


def _as_role(role) -> Optional[Role]:
    try:
        return Role(getattr(role, "value", role))
    except ValueError:
        return None


def has_permission(role, permission: Permission) -> bool:
    """Check the default matrix. Unknown roles have no permissions."""
    resolved = _as_role(role)
    if resolved is None:
        return False
    return Permission(permission) in DEFAULT_ROLE_PERMISSIONS.get(resolved, set())


def has_any_permission(role, permissions: Iterable[Permission]) -> bool:
    return any(has_permission(role, p) for p in permissions)


def has_all_permissions(role, permissions: Iterable[Permission]) -> bool:
    return all(has_permission(role, p) for p in permissions)


def get_user_permissions(user: User) -> Set[Permission]:
    """Default permissions for a user's role."""
    resolved = _as_role(user.role)
    if resolved is None:
        return set()
    return set(DEFAULT_ROLE_PERMISSIONS.get(resolved, set()))


async def check_user_permission(db: AsyncSession, user: User, permission: Permission) -> bool:
    """
    Check ``permission`` for ``user``, honouring ``permissions`` table overrides.

    Inactive users never hold any permission.
    """
    if not user.is_active:
        return False

    permission = Permission(permission)
    result = await db.execute(select(PermissionSetting).where(PermissionSetting.id == permission.value))
    setting = result.scalar_one_or_none()
    if setting is not None:
        return setting.allows(getattr(user.role, "value", user.role))
    return has_permission(user.role, permission)


async def get_effective_permissions(db: AsyncSession, user: User) -> Set[Permission]:
    """All permissions a user holds after applying table overrides."""
    if not user.is_active:
        return set()
    result = await db.execute(select(PermissionSetting))
    overrides = {row.id: row for row in result.scalars().all()}
    role = getattr(user.role, "value", user.role)

    permissions = set()
    for permission in Permission:
        setting = overrides.get(permission.value)
        allowed = setting.allows(role) if setting is not None else has_permission(role, permission)
        if allowed:
            permissions.add(permission)
    return permissions


def require_permission(permission: Permission):
    """
    Dependency factory for requiring a specific permission.

    Usage:
        @router.post("/red-zone/rules")
        async def create_rule(
            current_user: CurrentUser,
            _: None = Depends(require_permission(Permission.MANAGE_RED_ZONE_RULES))
        ):
            ...
    """
    async def checker(db: DbSession, current_user: CurrentUser) -> None:
        if not await check_user_permission(db, current_user, permission):
            logger.warning(
                f"Permission denied: user {current_user.id} lacks {permission.value}",
                extra={"user_id": current_user.id, "permission": permission.value}
            )
            raise ForbiddenError(f"Permission denied: requires {permission.value}")
    return checker


def require_admin(current_user: CurrentUser) -> None:
    """Dependency for requiring the admin role."""
    if _as_role(current_user.role) != Role.ADMIN:
        logger.warning(
            f"Admin access denied for user {current_user.id}",
            extra={"user_id": current_user.id, "role": str(current_user.role)}
        )
        raise ForbiddenError("Admin access required")
