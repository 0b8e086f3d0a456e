"""
AvailableFields catalog

Lists the field paths rules may reference, for the rule editor and for
validating rules on write. Built from the ``customers`` and
``customer_metrics`` columns plus the keys integrations have written into
``customer_metrics.extra``.
"""

import logging
from typing import Any, Iterable

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, JSON, Numeric, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.customer import Customer, CustomerMetric
from app.schemas.red_zone import AvailableField, EntityType, FieldType

logger = logging.getLogger(__name__)

CUSTOMER_SKIP_COLUMNS = {"id", "in_red_zone", "external_ids", "notes"}
METRIC_SKIP_COLUMNS = {"id", "customer_id", "extra", "updated_at"}

# Known keys of the customers.campaign_stats JSON column
CAMPAIGN_STATS_FIELDS = {
    "sent": FieldType.NUMBER,
    "opened": FieldType.NUMBER,
    "clicked": FieldType.NUMBER,
    "lastSentDate": FieldType.DATE,
}

# JSON columns whose nested keys are free-form
OPEN_JSON_ROOTS = {"campaign_stats"}

EXTRA_KEYS_SCAN_LIMIT = 500


def format_field_label(name: str) -> str:
    """``renewal_date`` -> ``Renewal Date``, ``campaign_stats.lastSentDate`` -> ``Campaign Stats Last Sent Date``."""
    words = []
    for part in name.replace(".", "_").split("_"):
        if not part:
            continue
        # Split camelCase
        word = ""
        for char in part:
            if char.isupper() and word:
                words.append(word)
                word = char
            else:
                word += char
        words.append(word)
    return " ".join(w[:1].upper() + w[1:] for w in words)


def column_field_type(column_type: Any) -> FieldType:
    if isinstance(column_type, Boolean):
        return FieldType.BOOLEAN
    if isinstance(column_type, (Integer, Float, Numeric)):
        return FieldType.NUMBER
    if isinstance(column_type, (Date, DateTime)):
        return FieldType.DATE
    return FieldType.STRING


def infer_field_type(name: str, sample: Any = None) -> FieldType:
    """Guess a type for an integration key from a sample value, then its name."""
    if isinstance(sample, bool):
        return FieldType.BOOLEAN
    if isinstance(sample, (int, float)):
        return FieldType.NUMBER

    lowered = name.lower()
    if lowered.endswith("_at") or "date" in lowered:
        return FieldType.DATE
    if any(token in lowered for token in ("amount", "count", "total", "price", "revenue", "mrr", "arr")):
        return FieldType.NUMBER
    if lowered.startswith(("is_", "has_")) or "enabled" in lowered or "active" in lowered:
        return FieldType.BOOLEAN
    return FieldType.STRING


def _column_fields(model, skip: set[str], entity_type: EntityType) -> dict[str, AvailableField]:
    fields = {}
    for column in model.__table__.columns:
        if column.key in skip or isinstance(column.type, JSON):
            continue
        fields[column.key] = AvailableField(
            label=format_field_label(column.key),
            type=column_field_type(column.type),
            entity_type=entity_type,
        )
    return fields


def static_fields() -> dict[str, AvailableField]:
    """Catalog entries derived from the ORM columns alone."""
    fields = _column_fields(Customer, CUSTOMER_SKIP_COLUMNS, EntityType.CUSTOMER)
    for key, field_type in CAMPAIGN_STATS_FIELDS.items():
        path = f"campaign_stats.{key}"
        fields[path] = AvailableField(
            label=format_field_label(path), type=field_type, entity_type=EntityType.CUSTOMER
        )
    fields.update(_column_fields(CustomerMetric, METRIC_SKIP_COLUMNS, EntityType.CUSTOMER_METRICS))
    return fields


async def get_available_fields(db: AsyncSession) -> dict[str, AvailableField]:
    """Full catalog: ORM columns plus integration keys found in metrics ``extra``."""
    fields = static_fields()

    result = await db.execute(
        select(CustomerMetric.extra).where(CustomerMetric.extra.is_not(None)).limit(EXTRA_KEYS_SCAN_LIMIT)
    )
    for extra in result.scalars().all():
        if not isinstance(extra, dict):
            continue
        for key, value in extra.items():
            if key in fields:
                continue
            fields[key] = AvailableField(
                label=format_field_label(key),
                type=infer_field_type(key, value),
                entity_type=EntityType.COMPANY,
            )

    return fields


def validate_field_paths(paths: Iterable[str], catalog: dict[str, AvailableField]) -> list[dict[str, str]]:
    """
    Check that every path is known to the catalog.

    Returns field-level errors (empty when all paths are valid). Nested keys
    of free-form JSON columns are always accepted.
    """
    errors = []
    for path in paths:
        if path in catalog:
            continue
        root = path.split(".", 1)[0]
        if "." in path and root in OPEN_JSON_ROOTS:
            continue
        errors.append({"field": path, "message": f"Unknown field '{path}'"})
    return errors
