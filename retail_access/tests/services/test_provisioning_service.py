"""
Tests for ProvisioningService: organizations, regions and stores.

Actor rules:
- organizations: native MASTER only
- regions / stores: MASTER, or a GO acting inside the organization
"""

import logging
import uuid
from datetime import datetime, timezone

import pytest

from retail_access.constants.hierarchy import (
    DepartmentType,
    HierarchyRole,
    OrganizationUnitType,
    PositionLevel,
)
from retail_access.database.session import transaction
from retail_access.models import ActingContext, HierarchicalUser, OrganizationUnit
from retail_access.platform.errors import AuthorizationDeniedError, ConflictError, NotFoundError
from retail_access.repositories.organization_unit_repo import OrganizationUnitRepository
from retail_access.repositories.position_repo import PositionRepository
from retail_access.schemas.provisioning import (
    CreateOrganizationCommand,
    CreateRegionCommand,
    CreateStoreCommand,
    NewUserData,
)
from retail_access.services.actor_resolver import ActorResolver
from retail_access.services.provisioning_service import ProvisioningService


@pytest.fixture
def service(db_session):
    return ProvisioningService(db_session)


@pytest.fixture
def acme_go(db_session, other_organization):
    user = HierarchicalUser.create_go("Alex Acme", "go@acme.com", "hash", other_organization["organization"].id)
    db_session.add(user)
    db_session.flush()
    return user


def new_user(email: str) -> NewUserData:
    return NewUserData(name="New Person", email=email, password_hash="hashed-secret")


class TestCreateOrganization:

    def test_master_creates_organization_with_company_and_departments(self, db_session, service, madnezz):
        response = service.create_organization(
            madnezz.master.id, CreateOrganizationCommand(name="Globex", code="GLOBEX")
        )
        assert response.code == "GLOBEX"
        assert set(response.departments) == set(DepartmentType)
        assert response.go_user is None

        company = db_session.get(OrganizationUnit, response.company_unit_id)
        assert company.unit_type == OrganizationUnitType.COMPANY
        assert company.parent_id is None
        assert company.organization_id == response.organization_id

    def test_go_user_is_provisioned_at_the_company(self, db_session, service, madnezz):
        response = service.create_organization(
            madnezz.master.id,
            CreateOrganizationCommand(name="Globex", code="GLOBEX", go_user=new_user("go@globex.com")),
        )
        position = PositionRepository(db_session).get_by_id(response.go_user.position_id)
        assert position.level == PositionLevel.GO
        assert position.organization_unit_id == response.company_unit_id
        assert position.title == "General Operator"
        assert position.department_types == set(DepartmentType)

        go = db_session.get(HierarchicalUser, response.go_user.user_id)
        assert go.hierarchy_role == HierarchyRole.GO
        assert go.organization_id == response.organization_id

    def test_creation_is_logged(self, service, madnezz, caplog):
        with caplog.at_level(logging.INFO):
            service.create_organization(madnezz.master.id, CreateOrganizationCommand(name="Globex", code="GLOBEX"))
        assert any(r.getMessage() == "provisioning.organization_created" for r in caplog.records)

    def test_duplicate_code(self, service, madnezz):
        with pytest.raises(ConflictError):
            service.create_organization(madnezz.master.id, CreateOrganizationCommand(name="Again", code="MADNEZZ"))

    def test_duplicate_go_email(self, service, madnezz):
        with pytest.raises(ConflictError):
            service.create_organization(
                madnezz.master.id,
                CreateOrganizationCommand(name="Globex", code="GLOBEX", go_user=new_user("gr@madnezz.com")),
            )

    @pytest.mark.security
    @pytest.mark.parametrize("user_attr", ["go", "gr", "store_manager"])
    def test_non_master_is_denied(self, service, madnezz, user_attr, caplog):
        with caplog.at_level(logging.WARNING):
            with pytest.raises(AuthorizationDeniedError):
                service.create_organization(
                    getattr(madnezz, user_attr).id, CreateOrganizationCommand(name="Globex", code="GLOBEX")
                )
        assert any(r.getMessage() == "provisioning.denied" for r in caplog.records)

    @pytest.mark.security
    def test_impersonating_master_is_denied(self, db_session, service, madnezz):
        madnezz.master.switch_context(HierarchyRole.GO, organization_id=madnezz.organization.id)
        db_session.flush()
        with pytest.raises(AuthorizationDeniedError):
            service.create_organization(madnezz.master.id, CreateOrganizationCommand(name="Globex", code="GLOBEX"))

    def test_inactive_master_is_denied(self, service, madnezz):
        madnezz.master.deactivate()
        with pytest.raises(AuthorizationDeniedError):
            service.create_organization(madnezz.master.id, CreateOrganizationCommand(name="Globex", code="GLOBEX"))

    def test_unknown_actor(self, service):
        with pytest.raises(NotFoundError):
            service.create_organization(str(uuid.uuid4()), CreateOrganizationCommand(name="Globex", code="GLOBEX"))

    def test_committed_work_survives_a_later_conflict(self, db_session, madnezz):
        master_id = madnezz.master.id
        with transaction(db_session):
            ProvisioningService(db_session).create_organization(
                master_id, CreateOrganizationCommand(name="Globex", code="GLOBEX")
            )

        with pytest.raises(ConflictError):
            with transaction(db_session):
                ProvisioningService(db_session).create_organization(
                    master_id,
                    CreateOrganizationCommand(name="Initech", code="INITECH", go_user=new_user("go@madnezz.com")),
                )
        organizations = ProvisioningService(db_session).organizations
        assert organizations.find_by_code("INITECH") is None
        assert organizations.find_by_code("GLOBEX") is not None


class TestCreateRegion:

    def test_go_creates_region_under_company(self, service, madnezz):
        response = service.create_region(
            madnezz.go.id,
            CreateRegionCommand(organization_id=madnezz.organization.id, name="Region East", code="RE"),
        )
        assert response.organization_id == madnezz.organization.id
        assert response.parent_id == madnezz.company.id
        assert response.code == "RE"

    def test_master_creates_region(self, service, madnezz):
        response = service.create_region(
            madnezz.master.id,
            CreateRegionCommand(organization_id=madnezz.organization.id, name="Region West", code="RW"),
        )
        assert response.parent_id == madnezz.company.id

    def test_region_is_visible_in_the_graph(self, db_session, service, madnezz):
        response = service.create_region(
            madnezz.go.id,
            CreateRegionCommand(organization_id=madnezz.organization.id, name="Region East", code="RE"),
        )
        graph = ActorResolver(db_session).graph_for(madnezz.organization.id)
        assert graph.is_descendant(madnezz.company.id, response.region_id)

    def test_master_impersonating_go_creates_region(self, service, madnezz):
        context = ActingContext(
            original_role=HierarchyRole.MASTER,
            current_role=HierarchyRole.GO,
            organization_id=madnezz.organization.id,
            store_id=None,
            unit_id=None,
            switched_at=datetime.now(timezone.utc),
        )
        response = service.create_region(
            madnezz.master.id,
            CreateRegionCommand(organization_id=madnezz.organization.id, name="Region East", code="RE"),
            acting_context=context,
        )
        assert response.organization_id == madnezz.organization.id

    def test_rn_conflicts_and_rs_succeeds(self, service, madnezz):
        org_id = madnezz.organization.id
        service.create_region(madnezz.go.id, CreateRegionCommand(organization_id=org_id, name="Region North", code="RN"))

        with pytest.raises(ConflictError):
            service.create_region(
                madnezz.go.id, CreateRegionCommand(organization_id=org_id, name="Region North Again", code="RN")
            )

        response = service.create_region(
            madnezz.go.id, CreateRegionCommand(organization_id=org_id, name="Region South", code="RS")
        )
        assert response.organization_id == org_id
        assert response.code == "RS"

    def test_duplicate_region_code(self, service, madnezz):
        with pytest.raises(ConflictError):
            service.create_region(
                madnezz.go.id,
                CreateRegionCommand(organization_id=madnezz.organization.id, name="Region Again", code="R1"),
            )

    def test_store_code_does_not_block_region_code(self, service, madnezz):
        response = service.create_region(
            madnezz.go.id,
            CreateRegionCommand(organization_id=madnezz.organization.id, name="Region S1", code="S1"),
        )
        assert response.code == "S1"

    @pytest.mark.security
    def test_go_of_another_organization_is_denied(self, service, madnezz, acme_go):
        with pytest.raises(AuthorizationDeniedError):
            service.create_region(
                acme_go.id,
                CreateRegionCommand(organization_id=madnezz.organization.id, name="Region East", code="RE"),
            )

    @pytest.mark.parametrize("user_attr", ["gr", "store_manager"])
    def test_lower_roles_are_denied(self, service, madnezz, user_attr):
        with pytest.raises(AuthorizationDeniedError):
            service.create_region(
                getattr(madnezz, user_attr).id,
                CreateRegionCommand(organization_id=madnezz.organization.id, name="Region East", code="RE"),
            )

    def test_unknown_organization(self, service, madnezz):
        with pytest.raises(NotFoundError):
            service.create_region(
                madnezz.master.id,
                CreateRegionCommand(organization_id=str(uuid.uuid4()), name="Region East", code="RE"),
            )


class TestCreateStore:

    def _command(self, madnezz, region, code="S3", manager=None):
        return CreateStoreCommand(
            organization_id=madnezz.organization.id,
            region_id=region.id,
            name="Store Three",
            code=code,
            store_manager=manager,
        )

    def test_go_creates_store_with_manager(self, db_session, service, madnezz):
        response = service.create_store(
            madnezz.go.id, self._command(madnezz, madnezz.r1, manager=new_user("sm3@madnezz.com"))
        )
        assert response.region_id == madnezz.r1.id
        assert response.organization_id == madnezz.organization.id

        manager = db_session.get(HierarchicalUser, response.store_manager.user_id)
        assert manager.hierarchy_role == HierarchyRole.STORE_MANAGER
        assert manager.store_id == response.store_id

        position = PositionRepository(db_session).get_by_id(response.store_manager.position_id)
        assert position.level == PositionLevel.STORE_MANAGER
        assert position.organization_unit_id == response.store_id
        assert position.department_types == {DepartmentType.ADMINISTRATIVE}

    def test_store_without_manager(self, service, madnezz):
        response = service.create_store(madnezz.master.id, self._command(madnezz, madnezz.r2))
        assert response.store_manager is None

    def test_manager_department_comes_from_policy(
        self, db_session, service, madnezz, reset_access_policy, make_yaml_config, monkeypatch
    ):
        path = make_yaml_config(
            "access_policy.yml",
            {"store_manager_position": {"title": "Shop Lead", "department": "trade"}},
        )
        monkeypatch.setenv("ACCESS_POLICY_CONFIG_PATH", str(path))

        response = service.create_store(
            madnezz.go.id, self._command(madnezz, madnezz.r1, manager=new_user("lead@madnezz.com"))
        )
        position = PositionRepository(db_session).get_by_id(response.store_manager.position_id)
        assert position.title == "Shop Lead"
        assert position.department_types == {DepartmentType.TRADE}

    def test_duplicate_store_code(self, service, madnezz):
        with pytest.raises(ConflictError):
            service.create_store(madnezz.go.id, self._command(madnezz, madnezz.r2, code="S1"))

    def test_duplicate_manager_email(self, service, madnezz):
        with pytest.raises(ConflictError):
            service.create_store(madnezz.go.id, self._command(madnezz, madnezz.r1, manager=new_user("sm@madnezz.com")))

    def test_parent_must_be_a_region(self, service, madnezz):
        with pytest.raises(NotFoundError) as exc_info:
            service.create_store(madnezz.go.id, self._command(madnezz, madnezz.s1))
        assert exc_info.value.entity == "Region"

    @pytest.mark.security
    def test_region_of_another_organization_is_not_found(self, service, madnezz, other_organization):
        with pytest.raises(NotFoundError):
            service.create_store(madnezz.go.id, self._command(madnezz, other_organization["region"]))

    @pytest.mark.security
    def test_go_of_another_organization_is_denied(self, service, madnezz, acme_go):
        with pytest.raises(AuthorizationDeniedError):
            service.create_store(acme_go.id, self._command(madnezz, madnezz.r1))

    def test_gr_is_denied(self, service, madnezz):
        with pytest.raises(AuthorizationDeniedError):
            service.create_store(madnezz.gr.id, self._command(madnezz, madnezz.r1))


class TestUniqueConstraintRace:
    """A concurrent insert slips past the code pre-check; the flush still conflicts."""

    @pytest.fixture
    def precheck_misses(self, monkeypatch):
        monkeypatch.setattr(OrganizationUnitRepository, "code_exists", lambda self, code, unit_type: False)

    def test_region_insert_conflicts(self, service, madnezz, precheck_misses):
        command = CreateRegionCommand(organization_id=madnezz.organization.id, name="Region Again", code="R1")
        with pytest.raises(ConflictError) as exc_info:
            service.create_region(madnezz.go.id, command)
        assert "R1" in exc_info.value.message

    def test_store_insert_conflicts(self, service, madnezz, precheck_misses):
        command = CreateStoreCommand(
            organization_id=madnezz.organization.id,
            region_id=madnezz.r2.id,
            name="Store Again",
            code="S1",
        )
        with pytest.raises(ConflictError) as exc_info:
            service.create_store(madnezz.go.id, command)
        assert "S1" in exc_info.value.message
