"""
Red Zone Schemas

Condition trees are persisted in the rule editor's camelCase JSON
(``logicOperator``, ``entityType``, ``fieldType``), so these models accept
and dump by alias.
"""

from __future__ import annotations

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator
from datetime import datetime
from typing import Annotated, Any, Optional, Union
from enum import Enum


class LogicOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    IN_RANGE = "in_range"


class EntityType(str, Enum):
    CUSTOMER = "customer"
    CUSTOMER_METRICS = "customer_metrics"
    SUBSCRIPTION = "subscription"
    INVOICE = "invoice"
    COMPANY = "company"


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


class RedZoneSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH_RISK = "high_risk"
    ATTENTION_NEEDED = "attention_needed"


class AlertStatus(str, Enum):
    OPEN = "open"
    PENDING_APPROVAL = "pending_approval"
    RESOLVED = "resolved"


def _stringify(value: Any) -> Any:
    """Rule values are strings on disk; accept JSON numbers/bools from older clients."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


RuleValue = Annotated[str, BeforeValidator(_stringify)]


# Condition tree

class Condition(BaseModel):
    """Single ``{field, operator, value}`` comparison."""
    model_config = ConfigDict(populate_by_name=True)

    field: str = Field(..., min_length=1, description="Field path, e.g. 'nps_score' or 'campaign_stats.lastSentDate'")
    operator: ConditionOperator
    value: RuleValue = ""
    entity_type: Optional[EntityType] = Field(None, alias="entityType")
    field_type: Optional[FieldType] = Field(None, alias="fieldType")


class ConditionGroup(BaseModel):
    """Conditions folded with one logic operator."""
    model_config = ConfigDict(populate_by_name=True)

    logic_operator: LogicOperator = Field(LogicOperator.AND, alias="logicOperator")
    conditions: list[Condition] = Field(..., min_length=1)


class ConditionTree(BaseModel):
    """Groups folded with the top-level logic operator."""
    model_config = ConfigDict(populate_by_name=True)

    logic_operator: LogicOperator = Field(LogicOperator.AND, alias="logicOperator")
    groups: list[ConditionGroup] = Field(..., min_length=1)


# Either encoding is accepted; legacy rows store a flat list of conditions
RuleConditions = Union[ConditionTree, list[Condition]]


class ResolutionCondition(BaseModel):
    """AND-combined condition checked against open alerts of a rule."""
    field_path: str = Field(..., min_length=1)
    operator: ConditionOperator
    value: RuleValue = ""

    model_config = ConfigDict(from_attributes=True)


def dump_conditions(conditions: RuleConditions) -> Any:
    """Serialize conditions to the on-disk JSON shape."""
    if isinstance(conditions, list):
        return [c.model_dump(by_alias=True, exclude_none=True, mode="json") for c in conditions]
    return conditions.model_dump(by_alias=True, exclude_none=True, mode="json")


# Rule schemas

class RedZoneRuleBase(BaseModel):
    """Base rule schema."""
    name: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None
    severity: RedZoneSeverity = RedZoneSeverity.ATTENTION_NEEDED
    conditions: RuleConditions
    auto_resolve: bool = False
    resolution_conditions: list[ResolutionCondition] = Field(default_factory=list)
    team_lead_approval_required: bool = False
    notification_message: Optional[str] = None
    enabled: bool = True

    @field_validator("conditions")
    @classmethod
    def legacy_list_not_empty(cls, v: RuleConditions) -> RuleConditions:
        if isinstance(v, list) and not v:
            raise ValueError("At least one condition is required")
        return v


class RedZoneRuleCreate(RedZoneRuleBase):
    """Schema for creating a rule."""

    @model_validator(mode="after")
    def auto_resolve_needs_criteria(self) -> "RedZoneRuleCreate":
        if self.auto_resolve and not self.resolution_conditions:
            raise ValueError("auto_resolve requires at least one resolution condition")
        return self


class RedZoneRuleUpdate(BaseModel):
    """Schema for updating a rule."""
    name: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    severity: Optional[RedZoneSeverity] = None
    conditions: Optional[RuleConditions] = None
    auto_resolve: Optional[bool] = None
    resolution_conditions: Optional[list[ResolutionCondition]] = None
    team_lead_approval_required: Optional[bool] = None
    notification_message: Optional[str] = None
    enabled: Optional[bool] = None

    @field_validator("conditions")
    @classmethod
    def legacy_list_not_empty(cls, v: Optional[RuleConditions]) -> Optional[RuleConditions]:
        if isinstance(v, list) and not v:
            raise ValueError("At least one condition is required")
        return v


class RedZoneRuleResponse(BaseModel):
    """Rule response schema; ``conditions`` is returned exactly as stored."""
    id: int
    name: str
    description: Optional[str] = None
    severity: RedZoneSeverity
    conditions: Any
    auto_resolve: bool
    resolution_conditions: list[ResolutionCondition] = Field(default_factory=list)
    team_lead_approval_required: bool
    notification_message: Optional[str] = None
    enabled: bool
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RedZoneRuleListResponse(BaseModel):
    items: list[RedZoneRuleResponse]
    total: int


# Alert schemas

class RedZoneActivityResponse(BaseModel):
    """Activity log entry."""
    id: int
    alert_id: int
    action: str
    performed_by: Optional[str] = None
    details: Optional[dict] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RedZoneAlertResponse(BaseModel):
    """Alert response schema."""
    id: int
    customer_id: int
    rule_id: Optional[int] = None
    reason: str
    severity: RedZoneSeverity
    status: AlertStatus
    details: Optional[dict] = None
    notes: Optional[str] = None
    assigned_to: Optional[int] = None
    escalated_to: Optional[int] = None
    escalated_at: Optional[datetime] = None
    resolution_summary: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RedZoneAlertDetailResponse(RedZoneAlertResponse):
    activities: list[RedZoneActivityResponse] = Field(default_factory=list)


class RedZoneAlertListResponse(BaseModel):
    items: list[RedZoneAlertResponse]
    total: int
    page: int
    page_size: int


class RedZoneAlertCreate(BaseModel):
    """Manually raised alert, not tied to a rule."""
    customer_id: int
    reason: str = Field(..., min_length=1)
    severity: RedZoneSeverity
    notes: Optional[str] = None


class RedZoneAlertUpdate(BaseModel):
    """Editable alert fields; status changes go through the action endpoints."""
    notes: Optional[str] = None
    assigned_to: Optional[int] = None


class EscalateAlertRequest(BaseModel):
    to_user_id: int
    note: Optional[str] = None


class ResolveAlertRequest(BaseModel):
    resolution_summary: str = Field(..., min_length=1)


class RequestApprovalRequest(BaseModel):
    note: Optional[str] = None


class ApproveResolutionRequest(BaseModel):
    resolution_summary: Optional[str] = None


# Engine results

class RuleEvaluationError(BaseModel):
    rule_id: int
    error: str


class CustomerCheckResponse(BaseModel):
    """Outcome of one customer pass."""
    customer_id: int
    rules_evaluated: int
    matched_rule_ids: list[int] = Field(default_factory=list)
    alerts_created: list[int] = Field(default_factory=list)
    alerts_resolved: list[int] = Field(default_factory=list)
    alerts_pending_approval: list[int] = Field(default_factory=list)
    errors: list[RuleEvaluationError] = Field(default_factory=list)
    in_red_zone: bool = False


class SweepResponse(BaseModel):
    """Outcome of a sweep over many customers."""
    rules_loaded: int
    customers_processed: int
    customers_failed: int
    alerts_created: int
    alerts_resolved: int
    alerts_pending_approval: int
    rule_errors: int
    interrupted: bool = False
    last_customer_id: Optional[int] = None


# Field catalog

class AvailableField(BaseModel):
    label: str
    type: FieldType
    entity_type: EntityType
