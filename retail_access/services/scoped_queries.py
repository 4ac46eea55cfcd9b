"""
Listing queries filtered by what an actor may see.

The actor's accessible-unit set is computed once (HierarchyGraph) and pushed
into the SQL as an IN filter; nothing is checked row by row.

Visibility:
- MASTER (native): everything, optionally narrowed to one organization
- GO / GR / STORE_MANAGER: rows of the actor's organization whose unit is in
  the actor's accessible-unit set
"""

import logging
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from retail_access.constants.hierarchy import OrganizationUnitType
from retail_access.models.hierarchical_user import HierarchicalUser
from retail_access.models.organization_unit import OrganizationUnit
from retail_access.models.position import Position
from retail_access.services.actor_resolver import ActorResolver, EffectiveActor
from retail_access.services.hierarchy_permission_service import HierarchyPermissionService

logger = logging.getLogger(__name__)


class ScopedQueryService:
    """Store and user listings confined to an actor's reach."""

    def __init__(self, session: Session, resolver: Optional[ActorResolver] = None):
        self.session = session
        self.resolver = resolver or ActorResolver(session)

    def accessible_unit_ids(self, actor: EffectiveActor) -> frozenset[str]:
        """Accessible units of a non-MASTER actor (empty when it has no organization)."""
        graph = self.resolver.graph_for(actor.organization_id)
        if graph is None or actor.level is None or not actor.is_active:
            return frozenset()
        return HierarchyPermissionService(graph).get_user_accessible_units(actor.level, actor.unit_id)

    def visible_stores(self, actor: EffectiveActor, organization_id: Optional[str] = None) -> List[OrganizationUnit]:
        query = self.session.query(OrganizationUnit).filter(
            OrganizationUnit.unit_type == OrganizationUnitType.STORE,
            OrganizationUnit.is_active.is_(True),
        )

        if actor.is_native_master:
            if organization_id:
                query = query.filter(OrganizationUnit.organization_id == organization_id)
            return query.order_by(OrganizationUnit.code).all()

        unit_ids = self.accessible_unit_ids(actor)
        if not unit_ids:
            return []

        return (
            query.filter(
                OrganizationUnit.organization_id == actor.organization_id,
                OrganizationUnit.id.in_(sorted(unit_ids)),
            )
            .order_by(OrganizationUnit.code)
            .all()
        )

    def visible_users(self, actor: EffectiveActor, organization_id: Optional[str] = None) -> List[HierarchicalUser]:
        """
        Users the actor may see.

        A user is visible when it holds an active position at an accessible
        unit, or is a store manager bound to an accessible store. A GO also
        sees every user of its organization without a position.
        """
        query = self.session.query(HierarchicalUser)

        if actor.is_native_master:
            if organization_id:
                query = query.filter(HierarchicalUser.organization_id == organization_id)
            return query.order_by(HierarchicalUser.email).all()

        unit_ids = self.accessible_unit_ids(actor)
        if not unit_ids:
            return []

        positioned = (
            select(Position.user_id)
            .where(
                Position.organization_id == actor.organization_id,
                Position.organization_unit_id.in_(sorted(unit_ids)),
                Position.is_active.is_(True),
            )
        )

        conditions = [
            HierarchicalUser.id.in_(positioned),
            HierarchicalUser.store_id.in_(sorted(unit_ids)),
        ]
        if actor.level is not None and actor.level.unit_type == OrganizationUnitType.COMPANY:
            conditions.append(HierarchicalUser.organization_id == actor.organization_id)

        return (
            query.filter(
                HierarchicalUser.organization_id == actor.organization_id,
                or_(*conditions),
            )
            .order_by(HierarchicalUser.email)
            .all()
        )

    def can_access_user(self, actor: EffectiveActor, target: HierarchicalUser) -> bool:
        """Whether ``target`` is among the users the actor may see."""
        if actor.is_native_master:
            return True
        if target.organization_id != actor.organization_id:
            return False
        if actor.level is not None and actor.level.unit_type == OrganizationUnitType.COMPANY:
            return actor.is_active

        unit_ids = self.accessible_unit_ids(actor)
        if not unit_ids:
            return False
        if target.store_id in unit_ids:
            return True

        position = (
            self.session.query(Position.id)
            .filter(
                Position.user_id == target.id,
                Position.organization_id == actor.organization_id,
                Position.organization_unit_id.in_(sorted(unit_ids)),
                Position.is_active.is_(True),
            )
            .first()
        )
        return position is not None
