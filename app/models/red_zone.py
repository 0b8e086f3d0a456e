"""
Red Zone Models

Customer health alerting:
- Configurable rules (condition trees + auto-resolution criteria)
- Alerts raised per customer/rule
- Append-only activity log for every alert transition
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Index, JSON, Enum as SQLEnum, text,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


SEVERITY_ENUM = SQLEnum("critical", "high_risk", "attention_needed", name="red_zone_severity_enum")


class RedZoneRule(Base):
    """
    Admin-configured trigger rule.

    ``conditions`` holds either the grouped tree
    ``{"logicOperator": "AND", "groups": [...]}`` or a legacy flat list of
    conditions; both shapes are read by the engine.
    """

    __tablename__ = "red_zone_rules"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)

    conditions = Column(JSON, nullable=False)
    severity = Column(SEVERITY_ENUM, nullable=False, default="attention_needed")

    auto_resolve = Column(Boolean, nullable=False, default=False)
    enabled = Column(Boolean, nullable=False, default=True, index=True)
    team_lead_approval_required = Column(Boolean, nullable=False, default=False)
    notification_message = Column(Text)

    created_by = Column(Integer, ForeignKey("api_users.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    resolution_criteria = relationship(
        "RedZoneResolutionCriterion",
        back_populates="rule",
        cascade="all, delete-orphan",
        order_by="RedZoneResolutionCriterion.position",
    )

    def __repr__(self):
        return f"<RedZoneRule id={self.id} name='{self.name}' enabled={self.enabled}>"


class RedZoneResolutionCriterion(Base):
    """One AND-combined auto-resolution condition of a rule."""

    __tablename__ = "red_zone_resolution_criteria"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(Integer, ForeignKey("red_zone_rules.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    field_path = Column(String(255), nullable=False)
    operator = Column(String(50), nullable=False)
    value = Column(Text, nullable=False, default="")

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    rule = relationship("RedZoneRule", back_populates="resolution_criteria")

    def __repr__(self):
        return f"<RedZoneResolutionCriterion rule_id={self.rule_id} {self.field_path} {self.operator}>"


class RedZoneAlert(Base):
    """
    Alert raised for a customer by a rule (or manually).

    At most one ``open`` alert per (customer_id, rule_id); the partial unique
    index backs that up when concurrent passes race.
    """

    __tablename__ = "red_zone_alerts"
    __table_args__ = (
        Index(
            "uq_red_zone_alerts_open_customer_rule",
            "customer_id",
            "rule_id",
            unique=True,
            postgresql_where=text("status = 'open'"),
            sqlite_where=text("status = 'open'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    rule_id = Column(Integer, ForeignKey("red_zone_rules.id", ondelete="SET NULL"), nullable=True, index=True)

    reason = Column(Text, nullable=False)
    severity = Column(SEVERITY_ENUM, nullable=False, default="attention_needed")
    status = Column(
        SQLEnum("open", "pending_approval", "resolved", name="red_zone_alert_status_enum"),
        nullable=False,
        default="open",
        index=True,
    )
    details = Column(JSON)  # Field values that drove the match
    notes = Column(Text)

    # Assignment / escalation
    assigned_to = Column(Integer, ForeignKey("api_users.id"))
    escalated_to = Column(Integer, ForeignKey("api_users.id"))
    escalated_at = Column(DateTime(timezone=True))

    # Resolution
    resolution_summary = Column(Text)
    resolved_by = Column(String(100))  # "user:12" or "system:red_zone_engine"
    resolved_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    customer = relationship("Customer", backref="red_zone_alerts")
    rule = relationship("RedZoneRule")
    activities = relationship(
        "RedZoneActivityLog",
        back_populates="alert",
        cascade="all, delete-orphan",
        order_by="RedZoneActivityLog.id",
    )

    def __repr__(self):
        return f"<RedZoneAlert id={self.id} customer_id={self.customer_id} status={self.status}>"


class RedZoneActivityLog(Base):
    """Append-only audit row, one per alert transition."""

    __tablename__ = "red_zone_activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    alert_id = Column(Integer, ForeignKey("red_zone_alerts.id", ondelete="CASCADE"), nullable=False, index=True)

    action = Column(String(50), nullable=False)  # created, updated, escalated, resolved
    performed_by = Column(String(100))
    details = Column(JSON)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    alert = relationship("RedZoneAlert", back_populates="activities")

    def __repr__(self):
        return f"<RedZoneActivityLog id={self.id} alert_id={self.alert_id} action={self.action}>"
