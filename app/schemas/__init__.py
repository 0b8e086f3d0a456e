from app.schemas.auth import (
    UserResponse,
    Token,
    TokenData,
    LoginRequest,
)
from app.schemas.red_zone import (
    ConditionTree,
    ConditionGroup,
    Condition,
    ResolutionCondition,
    RedZoneRuleCreate,
    RedZoneRuleUpdate,
    RedZoneRuleResponse,
    RedZoneAlertResponse,
    RedZoneAlertDetailResponse,
)

__all__ = [
    # Auth
    "UserResponse",
    "Token",
    "TokenData",
    "LoginRequest",
    # Red Zone
    "ConditionTree",
    "ConditionGroup",
    "Condition",
    "ResolutionCondition",
    "RedZoneRuleCreate",
    "RedZoneRuleUpdate",
    "RedZoneRuleResponse",
    "RedZoneAlertResponse",
    "RedZoneAlertDetailResponse",
]
