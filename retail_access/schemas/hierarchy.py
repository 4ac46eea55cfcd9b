"""Hierarchy tree view schemas."""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from retail_access.constants.hierarchy import HierarchyRole, OrganizationUnitType


class UnitManager(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    name: str
    email: str


class HierarchyNode(BaseModel):
    """One unit of the tree with its visible children."""

    model_config = ConfigDict(frozen=True)

    id: str
    organization_id: str
    name: str
    code: str
    unit_type: OrganizationUnitType
    is_active: bool
    manager: Optional[UnitManager] = None
    children: tuple["HierarchyNode", ...] = ()


class HierarchyStatistics(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_organizations: int = 0
    total_regions: int = 0
    total_stores: int = 0
    total_managers: int = 0


class HierarchyTreeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    role: HierarchyRole
    roots: tuple[HierarchyNode, ...]
    statistics: HierarchyStatistics


HierarchyNode.model_rebuild()
