# Services module
from app.services.red_zone import AlertLifecycleManager, RedZoneEngine, RedZoneRuleService

__all__ = [
    "AlertLifecycleManager",
    "RedZoneEngine",
    "RedZoneRuleService",
]
