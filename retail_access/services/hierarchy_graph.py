"""
In-memory graph of one organization's unit tree.

The graph is built from a single batch fetch of every unit of the
organization (see OrganizationUnitRepository.load_graph) and all traversal
happens in-process. Build it once per request and reuse it for every check
of that request.

Traversal never trusts parent pointers: every walk tracks visited ids and is
capped at max_traversal_depth hops, so a corrupted parent_id cycle ends the
walk (logged as hierarchy.cycle_detected) instead of looping.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Optional

from retail_access.config.access_policy import get_access_policy
from retail_access.constants.hierarchy import OrganizationUnitType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitNode:
    """Read-only snapshot of an organization unit."""
    id: str
    organization_id: str
    parent_id: Optional[str]
    unit_type: OrganizationUnitType
    code: str
    name: str
    is_active: bool

    @classmethod
    def from_model(cls, unit) -> "UnitNode":
        return cls(
            id=unit.id,
            organization_id=unit.organization_id,
            parent_id=unit.parent_id,
            unit_type=OrganizationUnitType(unit.unit_type),
            code=unit.code,
            name=unit.name,
            is_active=bool(unit.is_active),
        )


class HierarchyGraph:
    """Adjacency view over the units of a single organization."""

    def __init__(
        self,
        organization_id: str,
        nodes: Iterable[UnitNode],
        max_depth: Optional[int] = None,
    ):
        self.organization_id = organization_id
        self.max_depth = max_depth or get_access_policy().max_traversal_depth
        self._nodes: dict[str, UnitNode] = {}
        self._children: dict[str, list[str]] = {}

        for node in nodes:
            if node.organization_id != organization_id:
                # Never let a foreign unit into this tenant's graph
                logger.warning(
                    "hierarchy.foreign_unit_skipped",
                    extra={"organization_id": organization_id, "unit_id": node.id},
                )
                continue
            self._nodes[node.id] = node

        for node in self._nodes.values():
            if node.parent_id is not None:
                self._children.setdefault(node.parent_id, []).append(node.id)

    @classmethod
    def from_units(cls, organization_id: str, units: Iterable, max_depth: Optional[int] = None):
        return cls(organization_id, (UnitNode.from_model(u) for u in units), max_depth)

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, unit_id: Optional[str]) -> Optional[UnitNode]:
        if unit_id is None:
            return None
        return self._nodes.get(unit_id)

    def nodes(self) -> list[UnitNode]:
        return list(self._nodes.values())

    def children_of(self, unit_id: str, active_only: bool = True) -> list[UnitNode]:
        children = [self._nodes[c] for c in self._children.get(unit_id, [])]
        if active_only:
            children = [c for c in children if c.is_active]
        return children

    @property
    def company_unit(self) -> Optional[UnitNode]:
        for node in self._nodes.values():
            if node.unit_type == OrganizationUnitType.COMPANY and node.parent_id is None:
                return node
        return None

    def active_unit_ids(self) -> frozenset[str]:
        return frozenset(n.id for n in self._nodes.values() if n.is_active)

    def ancestors(self, unit_id: str) -> list[str]:
        """Parent chain of ``unit_id``, nearest first."""
        chain: list[str] = []
        visited = {unit_id}
        node = self._nodes.get(unit_id)

        while node is not None and node.parent_id is not None:
            if node.parent_id in visited or len(chain) >= self.max_depth:
                logger.warning(
                    "hierarchy.cycle_detected",
                    extra={
                        "organization_id": self.organization_id,
                        "unit_id": unit_id,
                        "at_unit_id": node.id,
                        "hops": len(chain),
                    },
                )
                break
            chain.append(node.parent_id)
            visited.add(node.parent_id)
            node = self._nodes.get(node.parent_id)

        return chain

    def is_descendant(self, ancestor_id: str, unit_id: str) -> bool:
        """True iff ``ancestor_id`` is a strict ancestor of ``unit_id``."""
        if ancestor_id == unit_id:
            return False
        return ancestor_id in self.ancestors(unit_id)

    def is_in_subtree(self, root_id: str, unit_id: str) -> bool:
        """``unit_id`` is ``root_id`` itself or one of its descendants."""
        if root_id == unit_id:
            return True
        return self.is_descendant(root_id, unit_id)

    def collect_subtree(self, root_id: str, active_only: bool = True) -> frozenset[str]:
        """
        ``root_id`` plus the transitive closure of its children.

        The root is always included; descendants are filtered by is_active
        when ``active_only`` is set. Breadth-first, no duplicates.
        """
        collected = {root_id}
        queue = deque([(root_id, 0)])

        while queue:
            current, depth = queue.popleft()
            if depth >= self.max_depth:
                logger.warning(
                    "hierarchy.depth_cap_reached",
                    extra={
                        "organization_id": self.organization_id,
                        "root_id": root_id,
                        "unit_id": current,
                    },
                )
                continue
            for child in self.children_of(current, active_only=active_only):
                if child.id in collected:
                    logger.warning(
                        "hierarchy.cycle_detected",
                        extra={
                            "organization_id": self.organization_id,
                            "unit_id": child.id,
                            "root_id": root_id,
                        },
                    )
                    continue
                collected.add(child.id)
                queue.append((child.id, depth + 1))

        return frozenset(collected)
