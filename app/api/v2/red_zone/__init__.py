"""
Red Zone API Endpoints

- Rule management
- Alert lifecycle (escalate, resolve, approval)
- Field catalog for the rule editor
- On-demand customer checks and sweeps
"""

from app.api.v2.red_zone.rules import router as rules_router
from app.api.v2.red_zone.alerts import router as alerts_router
from app.api.v2.red_zone.fields import router as fields_router
from app.api.v2.red_zone.checks import router as checks_router

__all__ = [
    "rules_router",
    "alerts_router",
    "fields_router",
    "checks_router",
]
