"""
Access control: hierarchy reachability combined with department grants.

Reaching a unit is necessary but never sufficient. A resource is accessible
only when the unit is reachable AND the actor holds the resource's department
(GO implicitly holds every department).
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from retail_access.constants.hierarchy import (
    DepartmentType,
    GR_DELEGABLE_DEPARTMENTS,
    PositionLevel,
)
from retail_access.services.hierarchy_graph import HierarchyGraph
from retail_access.services.hierarchy_permission_service import HierarchyPermissionService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectivePermission:
    """One (unit, department) pair an actor may act on."""
    unit_id: str
    department: DepartmentType
    level: PositionLevel


class AccessControlService:
    """Department-aware authorization on top of HierarchyPermissionService."""

    def __init__(self, graph: HierarchyGraph):
        self.graph = graph
        self.hierarchy = HierarchyPermissionService(graph)

    def can_user_access_department(
        self,
        department: DepartmentType,
        actor_level: PositionLevel,
        actor_departments: Iterable[DepartmentType],
    ) -> bool:
        if PositionLevel(actor_level) == PositionLevel.GO:
            return True
        return DepartmentType(department) in frozenset(actor_departments)

    def can_user_access_resource(
        self,
        target_unit_id: str,
        resource_department: DepartmentType,
        actor_level: PositionLevel,
        actor_unit_id: Optional[str],
        actor_departments: Iterable[DepartmentType],
    ) -> bool:
        if not self.hierarchy.can_user_access_organization_unit(
            actor_level, actor_unit_id, target_unit_id
        ):
            logger.debug(
                "access.unit_unreachable",
                extra={
                    "actor_level": PositionLevel(actor_level).value,
                    "actor_unit_id": actor_unit_id,
                    "target_unit_id": target_unit_id,
                },
            )
            return False

        allowed = self.can_user_access_department(
            resource_department, actor_level, actor_departments
        )
        if not allowed:
            logger.debug(
                "access.department_missing",
                extra={
                    "actor_level": PositionLevel(actor_level).value,
                    "department": DepartmentType(resource_department).value,
                    "target_unit_id": target_unit_id,
                },
            )
        return allowed

    def get_effective_permissions(
        self,
        actor_level: PositionLevel,
        actor_unit_id: Optional[str],
        actor_departments: Iterable[DepartmentType],
    ) -> list[EffectivePermission]:
        """
        Every accessible unit crossed with every department of the actor.

        Meant for permission listings, not for per-request authorization.
        Sorted by unit id then department so the result is stable.
        """
        actor_level = PositionLevel(actor_level)
        units = self.hierarchy.get_user_accessible_units(actor_level, actor_unit_id)
        departments = sorted(frozenset(DepartmentType(d) for d in actor_departments), key=lambda d: d.value)

        return sorted(
            (
                EffectivePermission(unit_id=unit_id, department=department, level=actor_level)
                for unit_id in units
                for department in departments
            ),
            key=lambda p: (p.unit_id, p.department.value),
        )

    @staticmethod
    def validate_delegation(
        delegator_level: PositionLevel,
        delegatee_level: PositionLevel,
        department: DepartmentType,
    ) -> bool:
        """
        Whether ``delegator_level`` may grant ``department`` to ``delegatee_level``.

        The delegator must be strictly above the delegatee. A GO may delegate
        any department; a GR only operations, trade or marketing, and only to
        a store manager.
        """
        delegator_level = PositionLevel(delegator_level)
        delegatee_level = PositionLevel(delegatee_level)
        department = DepartmentType(department)

        if not delegator_level.is_higher_than(delegatee_level):
            return False

        if delegator_level == PositionLevel.GO:
            return True

        if delegator_level == PositionLevel.GR:
            return (
                delegatee_level == PositionLevel.STORE_MANAGER
                and department in GR_DELEGABLE_DEPARTMENTS
            )

        return False
