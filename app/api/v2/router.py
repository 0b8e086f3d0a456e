from fastapi import APIRouter
from app.api.v2 import auth
from app.api.v2.red_zone import (
    rules_router,
    alerts_router,
    fields_router,
    checks_router,
)

api_router = APIRouter()

# Include all v2 routers
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])

# Red Zone
api_router.include_router(fields_router, prefix="/red-zone", tags=["red-zone"])
api_router.include_router(rules_router, prefix="/red-zone/rules", tags=["red-zone-rules"])
api_router.include_router(alerts_router, prefix="/red-zone/alerts", tags=["red-zone-alerts"])
api_router.include_router(checks_router, prefix="/red-zone", tags=["red-zone"])
