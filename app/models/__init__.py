from app.models.user import User
from app.models.customer import Customer, CustomerMetric
from app.models.permission import PermissionSetting
from app.models.red_zone import (
    RedZoneRule,
    RedZoneResolutionCriterion,
    RedZoneAlert,
    RedZoneActivityLog,
)

__all__ = [
    "User",
    "Customer",
    "CustomerMetric",
    "PermissionSetting",
    # Red Zone
    "RedZoneRule",
    "RedZoneResolutionCriterion",
    "RedZoneAlert",
    "RedZoneActivityLog",
]
