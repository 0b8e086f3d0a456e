"""
Field Resolver

Resolves a rule field path (``nps_score``, ``campaign_stats.lastSentDate``)
against a customer snapshot. Missing paths resolve to ``UNDEFINED``, which is
distinct from a stored ``None``.
"""

import json
from collections.abc import Mapping
from typing import Any


class _Undefined:
    """Sentinel for a field path that does not exist on the snapshot."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


def _as_mapping(value: Any) -> Any:
    """JSON columns sometimes arrive as encoded strings (legacy imports)."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("{"):
            try:
                decoded = json.loads(stripped)
            except ValueError:
                return value
            if isinstance(decoded, Mapping):
                return decoded
    return value


def resolve_field(snapshot: Mapping, field_path: str) -> Any:
    """
    Resolve ``field_path`` on ``snapshot``.

    A flat key wins over dotted descent, so metric keys that contain dots
    still resolve directly.
    """
    if not field_path:
        return UNDEFINED

    if field_path in snapshot:
        return snapshot[field_path]

    current: Any = snapshot
    for part in field_path.split("."):
        current = _as_mapping(current)
        if not isinstance(current, Mapping) or part not in current:
            return UNDEFINED
        current = current[part]
    return current


def is_undefined(value: Any) -> bool:
    return value is UNDEFINED
