"""
Hierarchy-scoped access control entry points.

CRITICAL SECURITY REQUIREMENTS:
- Every decision uses the actor's EFFECTIVE role: a MASTER that switched
  context is evaluated exactly as the role it impersonates
- Cross-tenant access is always denied (only a native MASTER spans
  organizations)
- All hierarchy checks MUST go through this module or the services it wraps

The session and the acting context are explicit parameters. Nothing here
reads ambient request state. Pass the same ActorResolver to several calls of
one request to load each organization graph only once.

Usage:
    from retail_access.platform.rbac import authorize_or_raise

    authorize_or_raise(session, user, store_id, DepartmentType.OPERATIONS)
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from retail_access.constants.hierarchy import DepartmentType, HierarchyRole, get_default_permissions
from retail_access.models.hierarchical_user import ActingContext, HierarchicalUser
from retail_access.models.organization_unit import OrganizationUnit
from retail_access.platform.errors import AuthorizationDeniedError
from retail_access.schemas.context_switch import (
    ResetContextResponse,
    SwitchContextCommand,
    SwitchContextResponse,
)
from retail_access.services.access_control_service import AccessControlService
from retail_access.services.actor_resolver import ActorResolver
from retail_access.services.context_switch_service import ContextSwitchService
from retail_access.services.hierarchy_permission_service import HierarchyPermissionService

logger = logging.getLogger(__name__)


def authorize(
    session: Session,
    actor: HierarchicalUser,
    target_unit_id: str,
    required_department: DepartmentType,
    acting_context: Optional[ActingContext] = None,
    resolver: Optional[ActorResolver] = None,
) -> bool:
    """
    Whether ``actor`` may act on ``required_department`` at ``target_unit_id``.

    A native MASTER is always allowed. Anyone else needs the target unit to
    be in its effective organization, the unit to be reachable, and the
    department to be granted.
    """
    required_department = DepartmentType(required_department)
    resolver = resolver or ActorResolver(session)
    effective = resolver.resolve(actor, acting_context)

    if not effective.is_active:
        return False

    if effective.is_native_master:
        return True

    graph = resolver.graph_for(effective.organization_id)
    if graph is None or target_unit_id not in graph:
        logger.debug(
            "rbac.unit_outside_organization",
            extra={
                "user_id": effective.user_id,
                "organization_id": effective.organization_id,
                "unit_id": target_unit_id,
            },
        )
        return False

    return AccessControlService(graph).can_user_access_resource(
        target_unit_id,
        required_department,
        effective.level,
        effective.unit_id,
        effective.departments,
    )


def authorize_or_raise(
    session: Session,
    actor: HierarchicalUser,
    target_unit_id: str,
    required_department: DepartmentType,
    acting_context: Optional[ActingContext] = None,
    resolver: Optional[ActorResolver] = None,
) -> None:
    """
    Programmatic access check that raises on failure.

    Raises:
        AuthorizationDeniedError: access denied
    """
    if not authorize(session, actor, target_unit_id, required_department, acting_context, resolver):
        logger.warning(
            "rbac.denied",
            extra={
                "user_id": actor.id,
                "role": actor.current_role.value,
                "unit_id": target_unit_id,
                "department": DepartmentType(required_department).value,
                "context_override": acting_context is not None,
            },
        )
        raise AuthorizationDeniedError(
            "You do not have access to this resource",
            details={"unit_id": target_unit_id},
        )


def accessible_units(
    session: Session,
    actor: HierarchicalUser,
    acting_context: Optional[ActingContext] = None,
    resolver: Optional[ActorResolver] = None,
) -> frozenset[str]:
    """Ids of every unit the actor may reach (all active units for a native MASTER)."""
    resolver = resolver or ActorResolver(session)
    effective = resolver.resolve(actor, acting_context)

    if not effective.is_active:
        return frozenset()

    if effective.is_native_master:
        rows = session.query(OrganizationUnit.id).filter(OrganizationUnit.is_active.is_(True)).all()
        return frozenset(row[0] for row in rows)

    graph = resolver.graph_for(effective.organization_id)
    if graph is None:
        return frozenset()
    return HierarchyPermissionService(graph).get_user_accessible_units(effective.level, effective.unit_id)


def can_manage(
    session: Session,
    actor: HierarchicalUser,
    target_user: HierarchicalUser,
    acting_context: Optional[ActingContext] = None,
    resolver: Optional[ActorResolver] = None,
) -> bool:
    """
    Whether ``actor`` may manage ``target_user``.

    MASTER users are never manageable. The target is always evaluated by its
    own role and position, never by an impersonation.
    """
    resolver = resolver or ActorResolver(session)
    effective = resolver.resolve(actor, acting_context)

    if not effective.is_active or target_user.is_master():
        return False

    if effective.is_native_master:
        return True

    if target_user.organization_id != effective.organization_id:
        return False

    target = resolver.resolve(target_user)
    graph = resolver.graph_for(effective.organization_id)
    return HierarchyPermissionService(graph).can_user_manage_user(
        effective.level, effective.unit_id, target.level, target.unit_id
    )


def has_permission(actor: HierarchicalUser, permission: str) -> bool:
    """
    Flat permission check honouring context switching.

    A switched MASTER holds only the default permissions of the role it
    impersonates, not its own wildcard.
    """
    if actor.is_context_switched:
        role = actor.current_role
        if role == HierarchyRole.MASTER:
            return actor.has_permission(permission)
        return permission in get_default_permissions(role)
    return actor.has_permission(permission)


def switch_context(
    session: Session,
    actor_id: str,
    role: HierarchyRole,
    organization_id: Optional[str] = None,
    store_id: Optional[str] = None,
    unit_id: Optional[str] = None,
) -> SwitchContextResponse:
    """
    Put a MASTER into ``role``'s context. The caller commits.

    Raises:
        NotFoundError, AuthorizationDeniedError, ValidationError
    """
    command = SwitchContextCommand(
        target_role=role,
        organization_id=organization_id,
        store_id=store_id,
        unit_id=unit_id,
    )
    return ContextSwitchService(session).switch_context(actor_id, command)


def reset_context(session: Session, actor_id: str) -> ResetContextResponse:
    """Return a MASTER to its native context. The caller commits."""
    return ContextSwitchService(session).reset_context(actor_id)
