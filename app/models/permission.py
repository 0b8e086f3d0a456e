from sqlalchemy import Column, String, Boolean, DateTime, Text
from sqlalchemy.sql import func
from app.database import Base


class PermissionSetting(Base):
    """
    Per-permission role access, editable from the admin roles screen.

    Rows override the defaults in ``app.security.rbac.DEFAULT_ROLE_PERMISSIONS``;
    a permission with no row keeps its default matrix.
    """

    __tablename__ = "permissions"

    id = Column(String(100), primary_key=True)  # Permission value, e.g. "approve_red_zone_resolution"
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")

    admin_access = Column(Boolean, nullable=False, default=True)
    team_lead_access = Column(Boolean, nullable=False, default=False)
    csm_access = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<PermissionSetting {self.id}>"

    def allows(self, role: str) -> bool:
        return {
            "admin": bool(self.admin_access),
            "team_lead": bool(self.team_lead_access),
            "csm": bool(self.csm_access),
        }.get(role, False)
