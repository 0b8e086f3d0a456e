# Security module
from app.security.rbac import (
    Permission,
    Role,
    check_user_permission,
    has_permission,
    require_admin,
    require_permission,
)

__all__ = [
    "Permission",
    "Role",
    "check_user_permission",
    "has_permission",
    "require_admin",
    "require_permission",
]
