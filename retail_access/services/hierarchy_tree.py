"""
Nested view of the unit tree an actor may see, with summary statistics.

Roots by effective role:
- MASTER (native): the company unit of every active organization
- GO: the company unit of its organization
- GR: its regional unit
- STORE_MANAGER: its store

Only active units are shown. Each node carries the holder of the active
position matching the unit's level, when there is one.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from retail_access.constants.hierarchy import HierarchyRole, OrganizationUnitType, PositionLevel
from retail_access.models.hierarchical_user import ActingContext
from retail_access.platform.errors import NotFoundError
from retail_access.repositories.hierarchical_user_repo import HierarchicalUserRepository
from retail_access.repositories.organization_repo import OrganizationRepository
from retail_access.repositories.position_repo import PositionRepository
from retail_access.schemas.hierarchy import (
    HierarchyNode,
    HierarchyStatistics,
    HierarchyTreeResponse,
    UnitManager,
)
from retail_access.services.actor_resolver import ActorResolver, EffectiveActor
from retail_access.services.hierarchy_graph import HierarchyGraph, UnitNode

logger = logging.getLogger(__name__)


class HierarchyTreeService:
    """
    Nested view of the units an actor may see, with managers and counts.

    The tree is rooted at the actor's anchor unit: the company for a GO,
    every active company for a native MASTER. Inactive units are pruned.
    """

    def __init__(self, session: Session, resolver: Optional[ActorResolver] = None):
        self.session = session
        self.resolver = resolver or ActorResolver(session)
        self.users = HierarchicalUserRepository(session)
        self.positions = PositionRepository(session)

    def get_tree(self, actor_id: str, acting_context: Optional[ActingContext] = None) -> HierarchyTreeResponse:
        """
        Raises:
            NotFoundError: actor missing
        """
        user = self.users.get_by_id(actor_id)
        if user is None:
            raise NotFoundError("User", actor_id)
        actor = self.resolver.resolve(user, acting_context)

        roots = []
        if actor.is_active:
            for graph, root_id in self._roots(actor):
                node = self._build(graph, root_id, self._managers(graph), visited=set(), depth=0)
                if node is not None:
                    roots.append(node)

        return HierarchyTreeResponse(
            user_id=actor.user_id,
            role=actor.role,
            roots=tuple(roots),
            statistics=self._statistics(roots),
        )

    def _roots(self, actor: EffectiveActor) -> list[tuple[HierarchyGraph, str]]:
        if actor.is_native_master:
            roots = []
            for organization in OrganizationRepository(self.session).get_all_active():
                graph = self.resolver.graph_for(organization.id)
                if graph.company_unit is not None:
                    roots.append((graph, graph.company_unit.id))
            return roots

        graph = self.resolver.graph_for(actor.organization_id)
        if graph is None:
            return []

        if actor.role == HierarchyRole.GO:
            return [(graph, graph.company_unit.id)] if graph.company_unit is not None else []

        node = graph.get(actor.unit_id)
        if node is None or node.unit_type != actor.level.unit_type:
            return []
        return [(graph, node.id)]

    def _managers(self, graph: HierarchyGraph) -> dict[str, UnitManager]:
        """Holder of the level-matching active position, per unit."""
        managers: dict[str, UnitManager] = {}
        positions = self.positions.get_positions_in_units(graph.organization_id, graph.active_unit_ids())
        for position in sorted(positions, key=lambda p: p.user.email):
            node = graph.get(position.organization_unit_id)
            if node is None or PositionLevel(position.level).unit_type != node.unit_type:
                continue
            managers.setdefault(
                node.id,
                UnitManager(user_id=position.user.id, name=position.user.name, email=position.user.email),
            )
        return managers

    def _build(
        self,
        graph: HierarchyGraph,
        unit_id: str,
        managers: dict[str, UnitManager],
        visited: set[str],
        depth: int,
    ) -> Optional[HierarchyNode]:
        node: Optional[UnitNode] = graph.get(unit_id)
        if node is None or not node.is_active:
            return None
        if unit_id in visited or depth > graph.max_depth:
            logger.warning(
                "hierarchy.cycle_detected",
                extra={"organization_id": graph.organization_id, "unit_id": unit_id},
            )
            return None
        visited.add(unit_id)

        children = []
        for child in sorted(graph.children_of(unit_id), key=lambda c: c.code):
            built = self._build(graph, child.id, managers, visited, depth + 1)
            if built is not None:
                children.append(built)

        return HierarchyNode(
            id=node.id,
            organization_id=node.organization_id,
            name=node.name,
            code=node.code,
            unit_type=node.unit_type,
            is_active=node.is_active,
            manager=managers.get(node.id),
            children=tuple(children),
        )

    def _statistics(self, roots: list[HierarchyNode]) -> HierarchyStatistics:
        organizations: set[str] = set()
        regions = stores = managers = 0

        stack = list(roots)
        while stack:
            node = stack.pop()
            organizations.add(node.organization_id)
            if node.unit_type == OrganizationUnitType.REGIONAL:
                regions += 1
            elif node.unit_type == OrganizationUnitType.STORE:
                stores += 1
            if node.manager is not None:
                managers += 1
            stack.extend(node.children)

        return HierarchyStatistics(
            total_organizations=len(organizations),
            total_regions=regions,
            total_stores=stores,
            total_managers=managers,
        )
