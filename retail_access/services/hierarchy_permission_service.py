"""
Unit reachability for position levels.

Answers "may an actor at this level and unit reach that unit" and "which
units may the actor reach". Every answer is computed over a HierarchyGraph,
so the service itself never touches the database.

Rules:
- GO: the whole organization
- GR: its regional unit and every descendant of it
- STORE_MANAGER: its own store unit only
"""

import logging
from typing import Optional

from retail_access.constants.hierarchy import PositionLevel
from retail_access.services.hierarchy_graph import HierarchyGraph

logger = logging.getLogger(__name__)


class HierarchyPermissionService:
    """Reachability checks over one organization's unit graph."""

    def __init__(self, graph: HierarchyGraph):
        self.graph = graph

    def can_user_access_organization_unit(
        self,
        actor_level: PositionLevel,
        actor_unit_id: Optional[str],
        target_unit_id: str,
    ) -> bool:
        """
        Whether an actor positioned at ``actor_unit_id`` reaches ``target_unit_id``.

        A GR reaches its own unit and its descendants; its parent and sibling
        regions are out of reach. A store manager reaches exactly its store.
        """
        actor_level = PositionLevel(actor_level)

        if actor_level == PositionLevel.GO:
            return True

        if actor_unit_id is None:
            return False

        if actor_level == PositionLevel.GR:
            return self.graph.is_in_subtree(actor_unit_id, target_unit_id)

        if actor_level == PositionLevel.STORE_MANAGER:
            return target_unit_id == actor_unit_id

        return False

    def can_user_manage_user(
        self,
        manager_level: PositionLevel,
        manager_unit_id: Optional[str],
        target_level: PositionLevel,
        target_unit_id: Optional[str],
    ) -> bool:
        """
        Whether a manager may manage a user holding ``target_level``.

        Peers and superiors are never manageable. A GO manages any GR or
        store manager; a GR manages store managers whose store lies under its
        region; a store manager manages nobody.
        """
        manager_level = PositionLevel(manager_level)
        target_level = PositionLevel(target_level)

        if not manager_level.is_higher_than(target_level):
            return False

        if manager_level == PositionLevel.GO:
            return target_level in (PositionLevel.GR, PositionLevel.STORE_MANAGER)

        if manager_level == PositionLevel.GR and target_level == PositionLevel.STORE_MANAGER:
            if manager_unit_id is None or target_unit_id is None:
                return False
            return self.graph.is_descendant(manager_unit_id, target_unit_id)

        return False

    def get_user_accessible_units(
        self,
        actor_level: PositionLevel,
        actor_unit_id: Optional[str],
    ) -> frozenset[str]:
        """Ids of every unit the actor may reach (no duplicates)."""
        actor_level = PositionLevel(actor_level)

        if actor_level == PositionLevel.GO:
            return self.graph.active_unit_ids()

        # A unit outside this organization's graph anchors nothing
        if actor_unit_id is None or actor_unit_id not in self.graph:
            return frozenset()

        if actor_level == PositionLevel.GR:
            return self.graph.collect_subtree(actor_unit_id, active_only=True)

        if actor_level == PositionLevel.STORE_MANAGER:
            return frozenset([actor_unit_id])

        return frozenset()
