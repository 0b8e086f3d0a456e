"""
Test factories for generating realistic test data.

Uses factory_boy for declarative test data generation.
"""

from .user import UserFactory, AdminUserFactory, TeamLeadUserFactory, InactiveUserFactory
from .customer import CustomerFactory, CustomerMetricFactory
from .red_zone import (
    ConditionFactory,
    RedZoneRuleFactory,
    condition_tree,
)

__all__ = [
    "UserFactory",
    "AdminUserFactory",
    "TeamLeadUserFactory",
    "InactiveUserFactory",
    "CustomerFactory",
    "CustomerMetricFactory",
    # Red Zone
    "ConditionFactory",
    "RedZoneRuleFactory",
    "condition_tree",
]
