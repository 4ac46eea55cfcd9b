"""
Canonical role, level and department model for the retail hierarchy.

IMPORTANT: This is the single source of truth for hierarchy ranks.
All rank comparisons MUST go through these types.

Two rank systems exist and must not be confused:
- HierarchyRole (user level): MASTER > GO > GR > STORE_MANAGER
- PositionLevel (position level): GO > GR > STORE_MANAGER (no MASTER,
  MASTER never holds a position)

In both systems a LOWER rank number means HIGHER authority.

Constructing any of these enums from an unknown string raises
ValidationError, e.g. HierarchyRole("OWNER").
"""

from enum import Enum
from typing import FrozenSet, Optional

from retail_access.platform.errors import ValidationError


class HierarchyRole(str, Enum):
    """
    User-level hierarchy role.

    MASTER is organization-agnostic; every other role is scoped to one
    organization.
    """
    MASTER = "MASTER"
    GO = "GO"
    GR = "GR"
    STORE_MANAGER = "STORE_MANAGER"

    @classmethod
    def _missing_(cls, value):
        raise ValidationError(
            f"Invalid hierarchy role: {value}",
            details={"field": "hierarchy_role", "value": str(value)},
        )

    @property
    def rank(self) -> int:
        return HIERARCHY_ROLE_RANKS[self]

    @property
    def position_level(self) -> Optional["PositionLevel"]:
        """Position level matching this role (None for MASTER)."""
        return ROLE_POSITION_LEVELS[self]

    def can_access_level(self, other: "HierarchyRole") -> bool:
        """Same or higher authority than ``other``."""
        return self.rank <= other.rank

    def can_manage_level(self, other: "HierarchyRole") -> bool:
        """Strictly higher authority than ``other`` (peers cannot manage peers)."""
        return self.rank < other.rank


class PositionLevel(str, Enum):
    """Level of a position inside an organization."""
    GO = "go"
    GR = "gr"
    STORE_MANAGER = "store_manager"

    @classmethod
    def _missing_(cls, value):
        raise ValidationError(
            f"Invalid position level: {value}",
            details={"field": "level", "value": str(value)},
        )

    @classmethod
    def from_role(cls, role: HierarchyRole) -> "PositionLevel":
        level = role.position_level
        if level is None:
            raise ValidationError(
                "MASTER has no position level",
                details={"field": "hierarchy_role", "value": role.value},
            )
        return level

    @property
    def rank(self) -> int:
        return POSITION_LEVEL_RANKS[self]

    @property
    def unit_type(self) -> "OrganizationUnitType":
        """Unit type a position of this level must sit at."""
        return LEVEL_UNIT_TYPES[self]

    def is_higher_than(self, other: "PositionLevel") -> bool:
        return self.rank < other.rank

    def is_lower_than(self, other: "PositionLevel") -> bool:
        return self.rank > other.rank

    def is_same_level(self, other: "PositionLevel") -> bool:
        return self.rank == other.rank

    def can_manage(self, other: "PositionLevel") -> bool:
        return self.is_higher_than(other) or self.is_same_level(other)


class OrganizationUnitType(str, Enum):
    """Node type in the company -> regional -> store tree."""
    COMPANY = "company"
    REGIONAL = "regional"
    STORE = "store"

    @classmethod
    def _missing_(cls, value):
        raise ValidationError(
            f"Invalid organization unit type: {value}",
            details={"field": "unit_type", "value": str(value)},
        )

    @property
    def depth(self) -> int:
        return UNIT_TYPE_DEPTHS[self]

    @property
    def parent_type(self) -> Optional["OrganizationUnitType"]:
        """Type the parent unit must have (None for the company root)."""
        return UNIT_PARENT_TYPES[self]


class DepartmentType(str, Enum):
    """Functional capability area, orthogonal to the unit tree."""
    ADMINISTRATIVE = "administrative"
    FINANCIAL = "financial"
    MARKETING = "marketing"
    OPERATIONS = "operations"
    TRADE = "trade"
    MACRO = "macro"

    @classmethod
    def _missing_(cls, value):
        raise ValidationError(
            f"Invalid department type: {value}",
            details={"field": "department_type", "value": str(value)},
        )

    @property
    def display_name(self) -> str:
        return DEPARTMENT_DISPLAY_NAMES[self]


class UserStatus(str, Enum):
    """User lifecycle status."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"

    @classmethod
    def _missing_(cls, value):
        raise ValidationError(
            f"Invalid user status: {value}",
            details={"field": "status", "value": str(value)},
        )


HIERARCHY_ROLE_RANKS: dict[HierarchyRole, int] = {
    HierarchyRole.MASTER: 1,
    HierarchyRole.GO: 2,
    HierarchyRole.GR: 3,
    HierarchyRole.STORE_MANAGER: 4,
}

POSITION_LEVEL_RANKS: dict[PositionLevel, int] = {
    PositionLevel.GO: 1,
    PositionLevel.GR: 2,
    PositionLevel.STORE_MANAGER: 3,
}

ROLE_POSITION_LEVELS: dict[HierarchyRole, Optional[PositionLevel]] = {
    HierarchyRole.MASTER: None,
    HierarchyRole.GO: PositionLevel.GO,
    HierarchyRole.GR: PositionLevel.GR,
    HierarchyRole.STORE_MANAGER: PositionLevel.STORE_MANAGER,
}

LEVEL_UNIT_TYPES: dict[PositionLevel, OrganizationUnitType] = {
    PositionLevel.GO: OrganizationUnitType.COMPANY,
    PositionLevel.GR: OrganizationUnitType.REGIONAL,
    PositionLevel.STORE_MANAGER: OrganizationUnitType.STORE,
}

UNIT_TYPE_DEPTHS: dict[OrganizationUnitType, int] = {
    OrganizationUnitType.COMPANY: 0,
    OrganizationUnitType.REGIONAL: 1,
    OrganizationUnitType.STORE: 2,
}

UNIT_PARENT_TYPES: dict[OrganizationUnitType, Optional[OrganizationUnitType]] = {
    OrganizationUnitType.COMPANY: None,
    OrganizationUnitType.REGIONAL: OrganizationUnitType.COMPANY,
    OrganizationUnitType.STORE: OrganizationUnitType.REGIONAL,
}

DEPARTMENT_DISPLAY_NAMES: dict[DepartmentType, str] = {
    DepartmentType.ADMINISTRATIVE: "Administrative",
    DepartmentType.FINANCIAL: "Financial",
    DepartmentType.MARKETING: "Marketing",
    DepartmentType.OPERATIONS: "Operations",
    DepartmentType.TRADE: "Trade",
    DepartmentType.MACRO: "Macro",
}

# Departments a GR may delegate to a store manager
GR_DELEGABLE_DEPARTMENTS: FrozenSet[DepartmentType] = frozenset([
    DepartmentType.OPERATIONS,
    DepartmentType.TRADE,
    DepartmentType.MARKETING,
])

# Roles a MASTER may impersonate through context switching
SWITCHABLE_ROLES: FrozenSet[HierarchyRole] = frozenset([
    HierarchyRole.GO,
    HierarchyRole.GR,
    HierarchyRole.STORE_MANAGER,
])

WILDCARD_PERMISSION = "*"

# Permissions seeded by the user factories
ROLE_DEFAULT_PERMISSIONS: dict[HierarchyRole, tuple[str, ...]] = {
    HierarchyRole.MASTER: (WILDCARD_PERMISSION,),
    HierarchyRole.GO: ("manage_organization", "create_stores", "manage_gr_users"),
    HierarchyRole.GR: ("manage_region", "view_stores", "manage_store_managers"),
    HierarchyRole.STORE_MANAGER: ("manage_store", "view_store_data"),
}


def get_default_permissions(role: HierarchyRole) -> list[str]:
    """Fresh list of the default permissions for a role."""
    return list(ROLE_DEFAULT_PERMISSIONS[role])
