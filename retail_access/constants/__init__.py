from retail_access.constants.hierarchy import (
    DepartmentType,
    HierarchyRole,
    OrganizationUnitType,
    PositionLevel,
    UserStatus,
)

__all__ = [
    "DepartmentType",
    "HierarchyRole",
    "OrganizationUnitType",
    "PositionLevel",
    "UserStatus",
]
