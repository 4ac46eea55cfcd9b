"""
Database models for the retail hierarchy.

Organization-scoped models inherit from OrganizationScopedMixin.
Importing this package registers every table on Base.metadata.
"""

from retail_access.models.base import TimestampMixin, OrganizationScopedMixin
from retail_access.models.organization import Organization
from retail_access.models.organization_unit import OrganizationUnit
from retail_access.models.department import Department
from retail_access.models.hierarchical_user import HierarchicalUser, ActingContext
from retail_access.models.position import Position, position_departments

__all__ = [
    "TimestampMixin",
    "OrganizationScopedMixin",
    "Organization",
    "OrganizationUnit",
    "Department",
    "HierarchicalUser",
    "ActingContext",
    "Position",
    "position_departments",
]
