from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, Float, Text, JSON, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


class Customer(Base):
    """Customer account managed by the customer success team."""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    industry = Column(String(100))
    website = Column(String(255))
    status = Column(String(50), default="active")

    # Revenue
    arr = Column(Float, default=0)
    mrr = Column(Float, default=0)
    add_on_revenue = Column(Float, default=0)

    # Lifecycle dates
    onboarding_start_date = Column(Date)
    onboarding_completion_date = Column(Date)
    renewal_date = Column(Date)
    last_review_meeting = Column(Date)

    # Engagement
    campaign_stats = Column(JSON)  # {"sent": 12, "opened": 8, "clicked": 3, "lastSentDate": "2024-03-01"}
    nps_score = Column(Integer)
    data_tagging_percentage = Column(Float)

    assigned_to_user_id = Column(Integer, ForeignKey("api_users.id"), nullable=True, index=True)
    external_ids = Column(JSON)  # {"chargebee": "...", "mysql": "..."}

    # Maintained by the Red Zone engine: true while any alert is unresolved
    in_red_zone = Column(Boolean, default=False, index=True)

    notes = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    metrics = relationship(
        "CustomerMetric",
        back_populates="customer",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Customer {self.name}>"


class CustomerMetric(Base):
    """
    Joined per-customer metrics.

    Integrations (MySQL import, Chargebee sync) write the typed columns and
    anything else they map into ``extra``; Red Zone rules read both.
    """

    __tablename__ = "customer_metrics"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(
        Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )

    active_stores = Column(Integer)
    total_stores = Column(Integer)
    revenue_1_year = Column(Float)
    revenue_ytd = Column(Float)
    campaigns_last_60_days = Column(Integer)
    monthly_campaigns = Column(Integer)
    qr_loyalty_enabled = Column(Boolean)
    last_campaign_date = Column(Date)

    extra = Column(JSON)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer", back_populates="metrics")

    def __repr__(self):
        return f"<CustomerMetric customer_id={self.customer_id}>"
