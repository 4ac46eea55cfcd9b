"""
Context switching use cases for MASTER users.

SECURITY: every precondition is checked before the user row is touched. A
failed switch leaves context_data exactly as it was.

The impersonation is persisted on the user (context_data) and survives
across requests until reset_context is called.
"""

import logging

from sqlalchemy.orm import Session

from retail_access.constants.hierarchy import HierarchyRole, OrganizationUnitType, SWITCHABLE_ROLES
from retail_access.platform.errors import AuthorizationDeniedError, NotFoundError, ValidationError
from retail_access.repositories.hierarchical_user_repo import HierarchicalUserRepository
from retail_access.repositories.organization_repo import OrganizationRepository
from retail_access.repositories.organization_unit_repo import OrganizationUnitRepository
from retail_access.schemas.context_switch import (
    ResetContextResponse,
    SwitchContextCommand,
    SwitchContextResponse,
)

logger = logging.getLogger(__name__)


class ContextSwitchService:
    """Switch a MASTER into (and out of) a lower role's context."""

    def __init__(self, session: Session):
        self.session = session
        self.users = HierarchicalUserRepository(session)
        self.organizations = OrganizationRepository(session)

    def _deny(self, message: str, user_id: str, **details) -> AuthorizationDeniedError:
        logger.warning(
            "context.switch_denied",
            extra={"user_id": user_id, "reason": message, **details},
        )
        return AuthorizationDeniedError(message, details={"user_id": user_id, **details})

    def switch_context(self, actor_id: str, command: SwitchContextCommand) -> SwitchContextResponse:
        """
        Enter the context described by ``command``.

        Raises:
            NotFoundError: user, organization, store or regional unit missing
            AuthorizationDeniedError: actor is not MASTER, or the store/unit
                belongs to another organization
            ValidationError: target role not switchable or required ids missing
        """
        user = self.users.get_by_id(actor_id)
        if user is None:
            raise NotFoundError("User", actor_id)

        if not user.is_master():
            raise self._deny("Only MASTER users can switch context", user.id)

        if command.organization_id is not None:
            if self.organizations.get_by_id(command.organization_id) is None:
                raise NotFoundError("Organization", command.organization_id)

        store = None
        if command.store_id is not None:
            store = OrganizationUnitRepository.lookup(self.session, command.store_id)
            if store is None or store.unit_type != OrganizationUnitType.STORE:
                raise NotFoundError("Store", command.store_id)

        role = command.target_role
        if role not in SWITCHABLE_ROLES:
            raise ValidationError(
                f"Cannot switch context to role {role.value}",
                details={"field": "target_role", "value": role.value},
            )

        if command.organization_id is None:
            raise ValidationError(
                f"organization_id is required for a {role.value} context",
                details={"field": "organization_id"},
            )

        if role == HierarchyRole.STORE_MANAGER and store is None:
            raise ValidationError(
                "store_id is required for a STORE_MANAGER context",
                details={"field": "store_id"},
            )

        if store is not None and store.organization_id != command.organization_id:
            raise self._deny(
                "Store does not belong to the organization",
                user.id,
                organization_id=command.organization_id,
                store_id=store.id,
            )

        if command.unit_id is not None:
            self._check_regional_unit(user.id, role, command)

        context = user.switch_context(
            role,
            organization_id=command.organization_id,
            store_id=command.store_id,
            unit_id=command.unit_id,
        )
        self.users.save(user)

        logger.info(
            "context.switched",
            extra={
                "user_id": user.id,
                "role": role.value,
                "organization_id": context.organization_id,
                "store_id": context.store_id,
                "unit_id": context.unit_id,
            },
        )

        return SwitchContextResponse(
            user_id=user.id,
            original_role=context.original_role,
            current_role=context.current_role,
            organization_id=context.organization_id,
            store_id=context.store_id,
            unit_id=context.unit_id,
            switched_at=context.switched_at,
        )

    def _check_regional_unit(self, user_id: str, role: HierarchyRole, command: SwitchContextCommand) -> None:
        if role != HierarchyRole.GR:
            raise ValidationError(
                "unit_id is only accepted for a GR context",
                details={"field": "unit_id"},
            )
        unit = OrganizationUnitRepository.lookup(self.session, command.unit_id)
        if unit is None or unit.unit_type != OrganizationUnitType.REGIONAL:
            raise NotFoundError("Regional unit", command.unit_id)
        if unit.organization_id != command.organization_id:
            raise self._deny(
                "Regional unit does not belong to the organization",
                user_id,
                organization_id=command.organization_id,
                unit_id=unit.id,
            )

    def reset_context(self, actor_id: str) -> ResetContextResponse:
        """
        Return a MASTER to its native context.

        Raises:
            NotFoundError: user missing
            AuthorizationDeniedError: user is not MASTER
        """
        user = self.users.get_by_id(actor_id)
        if user is None:
            raise NotFoundError("User", actor_id)

        if not user.is_master():
            logger.warning(
                "context.reset_denied",
                extra={"user_id": user.id, "role": user.hierarchy_role.value},
            )

        was_switched = user.is_context_switched
        user.reset_context()
        self.users.save(user)

        logger.info("context.reset", extra={"user_id": user.id, "was_switched": was_switched})

        return ResetContextResponse(
            user_id=user.id,
            current_role=user.current_role,
            was_switched=was_switched,
        )
