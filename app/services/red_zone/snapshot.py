"""
Customer snapshots for rule evaluation.

A snapshot is a plain dict: every ``customers`` column, every typed
``customer_metrics`` column, and the keys of ``customer_metrics.extra``
merged flat (typed columns win on collision). JSON columns such as
``campaign_stats`` stay nested so ``campaign_stats.lastSentDate`` resolves.
"""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.customer import Customer, CustomerMetric

# Bookkeeping columns that are never rule inputs
METRIC_SKIP_COLUMNS = {"id", "customer_id", "extra", "updated_at"}


def customer_to_snapshot(customer: Customer, metrics: Optional[CustomerMetric] = None) -> dict[str, Any]:
    """Flatten a customer (and its metrics row) into a snapshot dict."""
    snapshot: dict[str, Any] = {
        column.key: getattr(customer, column.key) for column in Customer.__table__.columns
    }

    if metrics is not None:
        for column in CustomerMetric.__table__.columns:
            if column.key in METRIC_SKIP_COLUMNS:
                continue
            snapshot[column.key] = getattr(metrics, column.key)

        if isinstance(metrics.extra, dict):
            for key, value in metrics.extra.items():
                snapshot.setdefault(key, value)

    return snapshot


async def build_customer_snapshot(db: AsyncSession, customer_id: int) -> Optional[dict[str, Any]]:
    """Load a customer with its metrics and return its snapshot, or None if missing."""
    result = await db.execute(
        select(Customer).options(selectinload(Customer.metrics)).where(Customer.id == customer_id)
    )
    customer = result.scalar_one_or_none()
    if not customer:
        return None
    return customer_to_snapshot(customer, customer.metrics)
