"""Repository layer with organization isolation enforcement."""

from retail_access.repositories.base_repo import (
    BaseRepository,
    OrganizationIsolationError,
)
from retail_access.repositories.organization_repo import OrganizationRepository
from retail_access.repositories.organization_unit_repo import OrganizationUnitRepository
from retail_access.repositories.department_repo import DepartmentRepository
from retail_access.repositories.position_repo import PositionRepository
from retail_access.repositories.hierarchical_user_repo import HierarchicalUserRepository

__all__ = [
    "BaseRepository",
    "OrganizationIsolationError",
    "OrganizationRepository",
    "OrganizationUnitRepository",
    "DepartmentRepository",
    "PositionRepository",
    "HierarchicalUserRepository",
]
