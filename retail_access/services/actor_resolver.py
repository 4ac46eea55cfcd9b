"""
Resolve who an actor effectively is for one request.

Authorization never reads hierarchy_role directly. It works on an
EffectiveActor, which folds in:
- MASTER impersonation (an explicit ActingContext passed by the caller takes
  precedence over the one persisted on the user)
- the user's active position (unit and departments)

Fallbacks when a non-MASTER user has no active position:
- GO: anchored at the company unit, no explicit departments (GO holds all
  departments implicitly anyway)
- STORE_MANAGER: anchored at user.store_id, no departments
- GR: no unit, so it reaches nothing
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from retail_access.config.access_policy import get_access_policy
from retail_access.constants.hierarchy import DepartmentType, HierarchyRole, PositionLevel
from retail_access.models.hierarchical_user import ActingContext, HierarchicalUser
from retail_access.platform.errors import AuthorizationDeniedError
from retail_access.repositories.department_repo import DepartmentRepository
from retail_access.repositories.organization_unit_repo import OrganizationUnitRepository
from retail_access.repositories.position_repo import PositionRepository
from retail_access.services.hierarchy_graph import HierarchyGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectiveActor:
    """The role, scope and departments an actor is evaluated with."""
    user_id: str
    base_role: HierarchyRole
    role: HierarchyRole
    organization_id: Optional[str]
    unit_id: Optional[str]
    departments: frozenset[DepartmentType] = field(default_factory=frozenset)
    is_active: bool = True
    acting_context: Optional[ActingContext] = None

    @property
    def level(self) -> Optional[PositionLevel]:
        return self.role.position_level

    @property
    def is_native_master(self) -> bool:
        """MASTER acting as itself (not impersonating)."""
        return self.role == HierarchyRole.MASTER

    @property
    def is_impersonating(self) -> bool:
        return self.acting_context is not None


class ActorResolver:
    """Builds EffectiveActor values; reuse a graph across calls of one request."""

    def __init__(self, session: Session):
        self.session = session
        self.positions = PositionRepository(session)
        self._graphs: dict[str, HierarchyGraph] = {}

    def graph_for(self, organization_id: Optional[str]) -> Optional[HierarchyGraph]:
        """Unit graph of an organization, loaded once per resolver."""
        if not organization_id:
            return None
        if organization_id not in self._graphs:
            self._graphs[organization_id] = OrganizationUnitRepository(
                self.session, organization_id
            ).load_graph()
        return self._graphs[organization_id]

    def use_graph(self, graph: HierarchyGraph) -> None:
        """Register a prebuilt graph so it is not loaded again."""
        self._graphs[graph.organization_id] = graph

    def resolve(
        self,
        user: HierarchicalUser,
        acting_context: Optional[ActingContext] = None,
    ) -> EffectiveActor:
        """
        Effective identity of ``user``.

        Raises:
            AuthorizationDeniedError: an acting context was supplied for a
                user that is not MASTER
        """
        if acting_context is not None and not user.is_master():
            logger.warning(
                "context.override_rejected",
                extra={"user_id": user.id, "role": user.hierarchy_role.value},
            )
            raise AuthorizationDeniedError(
                "Only MASTER users can act in another context",
                details={"user_id": user.id},
            )

        if user.is_master():
            context = acting_context or user.acting_context
            if context is None:
                return EffectiveActor(
                    user_id=user.id,
                    base_role=HierarchyRole.MASTER,
                    role=HierarchyRole.MASTER,
                    organization_id=None,
                    unit_id=None,
                    is_active=user.is_active,
                )
            return self._resolve_impersonation(user, context)

        return self._resolve_positioned(user)

    def _resolve_impersonation(self, user: HierarchicalUser, context: ActingContext) -> EffectiveActor:
        role = context.current_role
        organization_id = context.organization_id
        unit_id = context.scope_unit_id

        if role == HierarchyRole.GO:
            graph = self.graph_for(organization_id)
            company = graph.company_unit if graph is not None else None
            unit_id = company.id if company is not None else None

        departments: frozenset[DepartmentType] = frozenset()
        if organization_id and get_access_policy().impersonation_grants_all_departments:
            departments = DepartmentRepository(self.session, organization_id).get_active_types()

        logger.debug(
            "actor.resolved_impersonation",
            extra={
                "user_id": user.id,
                "role": role.value,
                "organization_id": organization_id,
                "unit_id": unit_id,
            },
        )
        return EffectiveActor(
            user_id=user.id,
            base_role=HierarchyRole.MASTER,
            role=role,
            organization_id=organization_id,
            unit_id=unit_id,
            departments=departments,
            is_active=user.is_active,
            acting_context=context,
        )

    def _resolve_positioned(self, user: HierarchicalUser) -> EffectiveActor:
        role = user.hierarchy_role
        position = self.positions.get_active_position(user.id)

        if position is not None and position.organization_id != user.organization_id:
            logger.warning(
                "actor.position_outside_organization",
                extra={
                    "user_id": user.id,
                    "position_id": position.id,
                    "organization_id": user.organization_id,
                },
            )
            position = None

        if position is not None:
            if PositionLevel(position.level) != role.position_level:
                logger.warning(
                    "actor.position_level_mismatch",
                    extra={
                        "user_id": user.id,
                        "position_id": position.id,
                        "role": role.value,
                        "level": PositionLevel(position.level).value,
                    },
                )
            unit_id = position.organization_unit_id
            departments = self.positions.get_departments_for_position(position.id)
        else:
            unit_id = self._fallback_unit(user)
            departments = frozenset()
            logger.info(
                "actor.no_active_position",
                extra={"user_id": user.id, "role": role.value, "unit_id": unit_id},
            )

        return EffectiveActor(
            user_id=user.id,
            base_role=role,
            role=role,
            organization_id=user.organization_id,
            unit_id=unit_id,
            departments=departments,
            is_active=user.is_active,
        )

    def _fallback_unit(self, user: HierarchicalUser) -> Optional[str]:
        if user.is_store_manager():
            return user.store_id
        if user.is_go():
            graph = self.graph_for(user.organization_id)
            company = graph.company_unit if graph is not None else None
            return company.id if company is not None else None
        return None
