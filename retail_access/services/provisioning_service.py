"""
Provisioning workflows: organizations, regions and stores.

Each workflow:
1. Resolves the acting user's effective role (impersonation included)
2. Checks the actor rule, then existence, then uniqueness
3. Adds and flushes the new rows; the caller owns the commit

Run them inside database.session.transaction() so that the whole workflow is
atomic. The uniqueness pre-checks give friendly errors; the unique
constraints settle races, and their IntegrityError surfaces as
ConflictError as well.

Actor rules:
- create_organization: MASTER only
- create_region / create_store: MASTER, or a GO acting in that organization
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from retail_access.config.access_policy import get_access_policy
from retail_access.constants.hierarchy import (
    DepartmentType,
    HierarchyRole,
    OrganizationUnitType,
    PositionLevel,
)
from retail_access.models.department import Department
from retail_access.models.hierarchical_user import ActingContext, HierarchicalUser
from retail_access.models.organization import Organization
from retail_access.models.organization_unit import OrganizationUnit
from retail_access.models.position import Position
from retail_access.platform.errors import AuthorizationDeniedError, ConflictError, NotFoundError
from retail_access.repositories.department_repo import DepartmentRepository
from retail_access.repositories.hierarchical_user_repo import HierarchicalUserRepository
from retail_access.repositories.organization_repo import OrganizationRepository
from retail_access.repositories.organization_unit_repo import OrganizationUnitRepository
from retail_access.repositories.position_repo import PositionRepository
from retail_access.schemas.provisioning import (
    CreateOrganizationCommand,
    CreateOrganizationResponse,
    CreateRegionCommand,
    CreateRegionResponse,
    CreateStoreCommand,
    CreateStoreResponse,
    NewUserData,
    ProvisionedUser,
)
from retail_access.services.actor_resolver import ActorResolver, EffectiveActor

logger = logging.getLogger(__name__)


class ProvisioningService:
    """Creates organizations, regions and stores on behalf of an actor."""

    def __init__(self, session: Session):
        self.session = session
        self.resolver = ActorResolver(session)
        self.users = HierarchicalUserRepository(session)
        self.organizations = OrganizationRepository(session)
        self.positions = PositionRepository(session)

    # ------------------------------------------------------------------
    # Actor rules
    # ------------------------------------------------------------------

    def _resolve_actor(self, actor_id: str, acting_context: Optional[ActingContext]) -> EffectiveActor:
        user = self.users.get_by_id(actor_id)
        if user is None:
            raise NotFoundError("User", actor_id)
        return self.resolver.resolve(user, acting_context)

    def _deny(self, actor: EffectiveActor, operation: str, organization_id: Optional[str] = None):
        logger.warning(
            "provisioning.denied",
            extra={
                "user_id": actor.user_id,
                "role": actor.role.value,
                "operation": operation,
                "organization_id": organization_id,
            },
        )
        return AuthorizationDeniedError(
            f"Role {actor.role.value} cannot {operation}",
            details={"user_id": actor.user_id, "organization_id": organization_id},
        )

    def _require_master(self, actor: EffectiveActor, operation: str) -> None:
        if not actor.is_active or actor.role != HierarchyRole.MASTER:
            raise self._deny(actor, operation)

    def _require_organization_admin(self, actor: EffectiveActor, organization_id: str, operation: str) -> None:
        if actor.is_active:
            if actor.role == HierarchyRole.MASTER:
                return
            if actor.role == HierarchyRole.GO and actor.organization_id == organization_id:
                return
        raise self._deny(actor, operation, organization_id)

    def _require_organization(self, organization_id: str) -> Organization:
        organization = self.organizations.get_by_id(organization_id)
        if organization is None:
            raise NotFoundError("Organization", organization_id)
        return organization

    def _require_free_email(self, user_data: Optional[NewUserData]) -> None:
        if user_data is not None and self.users.email_exists(user_data.email):
            raise ConflictError(
                f"Email already exists: {user_data.email}",
                details={"field": "email"},
            )

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def create_organization(
        self,
        actor_id: str,
        command: CreateOrganizationCommand,
        acting_context: Optional[ActingContext] = None,
    ) -> CreateOrganizationResponse:
        """
        Create an organization with its company unit and departments.

        When command.go_user is set, a GO user is provisioned with a GO
        position at the company unit covering every department.

        Raises:
            NotFoundError: actor missing
            AuthorizationDeniedError: actor is not (effectively) MASTER
            ConflictError: organization code or GO email already taken
        """
        actor = self._resolve_actor(actor_id, acting_context)
        self._require_master(actor, "create organizations")

        if self.organizations.code_exists(command.code):
            raise ConflictError(
                f"Organization code already exists: {command.code}",
                details={"field": "code", "value": command.code},
            )
        self._require_free_email(command.go_user)

        organization = self.organizations.save(Organization.create(command.name, command.code))

        units = OrganizationUnitRepository(self.session, organization.id)
        company = units.save(
            OrganizationUnit.create(
                organization.id, command.name, command.code, OrganizationUnitType.COMPANY
            )
        )

        department_repo = DepartmentRepository(self.session, organization.id)
        departments = [
            department_repo.save(Department.create(organization.id, department_type))
            for department_type in DepartmentType
        ]

        go_user = None
        if command.go_user is not None:
            go_user = self._provision_user(
                HierarchicalUser.create_go(
                    command.go_user.name,
                    command.go_user.email,
                    command.go_user.password_hash,
                    organization_id=organization.id,
                    phone=command.go_user.phone,
                ),
                company,
                PositionLevel.GO,
                get_access_policy().go_position_title,
                departments,
            )

        logger.info(
            "provisioning.organization_created",
            extra={
                "user_id": actor.user_id,
                "organization_id": organization.id,
                "unit_id": company.id,
                "go_user_id": go_user.user_id if go_user else None,
            },
        )

        return CreateOrganizationResponse(
            organization_id=organization.id,
            name=organization.name,
            code=organization.code,
            company_unit_id=company.id,
            departments=tuple(d.department_type for d in departments),
            go_user=go_user,
        )

    def create_region(
        self,
        actor_id: str,
        command: CreateRegionCommand,
        acting_context: Optional[ActingContext] = None,
    ) -> CreateRegionResponse:
        """
        Create a regional unit under the organization's company unit.

        Raises:
            NotFoundError: actor, organization or company unit missing
            AuthorizationDeniedError: actor is neither MASTER nor a GO of
                the organization
            ConflictError: a regional unit with the same code exists
        """
        actor = self._resolve_actor(actor_id, acting_context)
        self._require_organization_admin(actor, command.organization_id, "create regions")
        self._require_organization(command.organization_id)

        units = OrganizationUnitRepository(self.session, command.organization_id)
        if units.code_exists(command.code, OrganizationUnitType.REGIONAL):
            raise ConflictError(
                f"Region code already exists: {command.code}",
                details={"field": "code", "value": command.code},
            )

        company = units.find_company_unit()
        if company is None:
            raise NotFoundError("Company unit", command.organization_id)

        region = units.save(
            OrganizationUnit.create(
                command.organization_id,
                command.name,
                command.code,
                OrganizationUnitType.REGIONAL,
                parent=company,
            ),
            conflict_message=f"Region code already exists: {command.code}",
        )

        logger.info(
            "provisioning.region_created",
            extra={
                "user_id": actor.user_id,
                "organization_id": command.organization_id,
                "unit_id": region.id,
            },
        )

        return CreateRegionResponse(
            region_id=region.id,
            organization_id=region.organization_id,
            parent_id=company.id,
            name=region.name,
            code=region.code,
        )

    def create_store(
        self,
        actor_id: str,
        command: CreateStoreCommand,
        acting_context: Optional[ActingContext] = None,
    ) -> CreateStoreResponse:
        """
        Create a store unit under a region, optionally with its manager.

        The manager gets a STORE_MANAGER position at the store linked to the
        configured department (administrative by default).

        Raises:
            NotFoundError: actor, organization or region missing
            AuthorizationDeniedError: actor is neither MASTER nor a GO of
                the organization
            ConflictError: store code or manager email already taken
        """
        actor = self._resolve_actor(actor_id, acting_context)
        self._require_organization_admin(actor, command.organization_id, "create stores")
        self._require_organization(command.organization_id)

        units = OrganizationUnitRepository(self.session, command.organization_id)
        region = units.get_by_id(command.region_id)
        if region is None or region.unit_type != OrganizationUnitType.REGIONAL:
            raise NotFoundError("Region", command.region_id)

        if units.code_exists(command.code, OrganizationUnitType.STORE):
            raise ConflictError(
                f"Store code already exists: {command.code}",
                details={"field": "code", "value": command.code},
            )
        self._require_free_email(command.store_manager)

        store = units.save(
            OrganizationUnit.create(
                command.organization_id,
                command.name,
                command.code,
                OrganizationUnitType.STORE,
                parent=region,
            ),
            conflict_message=f"Store code already exists: {command.code}",
        )

        manager = None
        if command.store_manager is not None:
            policy = get_access_policy()
            department = DepartmentRepository(self.session, command.organization_id).find_by_type(
                policy.store_manager_department
            )
            manager = self._provision_user(
                HierarchicalUser.create_store_manager(
                    command.store_manager.name,
                    command.store_manager.email,
                    command.store_manager.password_hash,
                    organization_id=command.organization_id,
                    store_id=store.id,
                    phone=command.store_manager.phone,
                ),
                store,
                PositionLevel.STORE_MANAGER,
                policy.store_manager_position_title,
                [department] if department is not None else [],
            )

        logger.info(
            "provisioning.store_created",
            extra={
                "user_id": actor.user_id,
                "organization_id": command.organization_id,
                "unit_id": store.id,
                "region_id": region.id,
                "store_manager_id": manager.user_id if manager else None,
            },
        )

        return CreateStoreResponse(
            store_id=store.id,
            organization_id=store.organization_id,
            region_id=region.id,
            name=store.name,
            code=store.code,
            store_manager=manager,
        )

    def _provision_user(
        self,
        user: HierarchicalUser,
        unit: OrganizationUnit,
        level: PositionLevel,
        title: str,
        departments,
    ) -> ProvisionedUser:
        self.users.save(user)
        position = self.positions.save(
            Position.create(unit, user.id, level, title, departments=departments)
        )
        return ProvisionedUser(user_id=user.id, email=user.email, position_id=position.id)
