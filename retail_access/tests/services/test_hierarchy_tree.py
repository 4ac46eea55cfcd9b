"""
Tests for HierarchyTreeService.get_tree.
"""

import uuid
from datetime import datetime, timezone

import pytest

from retail_access.constants.hierarchy import HierarchyRole, OrganizationUnitType
from retail_access.models import ActingContext
from retail_access.platform.errors import NotFoundError
from retail_access.services.hierarchy_tree import HierarchyTreeService


@pytest.fixture
def service(db_session):
    return HierarchyTreeService(db_session)


def shape(node):
    """(code, [children shapes]) for compact assertions."""
    return node.code, [shape(child) for child in node.children]


class TestTreeByRole:

    def test_go_sees_the_whole_organization(self, service, madnezz):
        tree = service.get_tree(madnezz.go.id)
        assert tree.role == HierarchyRole.GO
        assert [shape(root) for root in tree.roots] == [
            ("MADNEZZ", [("R1", [("S1", [])]), ("R2", [("S2", [])])]),
        ]

    def test_go_tree_statistics(self, service, madnezz):
        stats = service.get_tree(madnezz.go.id).statistics
        assert stats.total_organizations == 1
        assert stats.total_regions == 2
        assert stats.total_stores == 2
        assert stats.total_managers == 3

    def test_managers_are_attached(self, service, madnezz):
        (company,) = service.get_tree(madnezz.go.id).roots
        r1, r2 = company.children
        assert company.manager.email == "go@madnezz.com"
        assert r1.manager.email == "gr@madnezz.com"
        assert r1.children[0].manager.email == "sm@madnezz.com"
        assert r2.manager is None

    def test_gr_sees_its_region(self, service, madnezz):
        tree = service.get_tree(madnezz.gr.id)
        assert [shape(root) for root in tree.roots] == [("R1", [("S1", [])])]
        assert tree.statistics.total_regions == 1
        assert tree.statistics.total_stores == 1

    def test_store_manager_sees_its_store(self, service, madnezz):
        tree = service.get_tree(madnezz.store_manager.id)
        (root,) = tree.roots
        assert root.unit_type == OrganizationUnitType.STORE
        assert root.children == ()

    def test_master_sees_every_organization(self, service, madnezz, other_organization):
        tree = service.get_tree(madnezz.master.id)
        assert [root.code for root in tree.roots] == ["ACME", "MADNEZZ"]
        assert tree.statistics.total_organizations == 2
        assert tree.statistics.total_stores == 3

    def test_switched_master_gets_the_impersonated_view(self, service, madnezz):
        context = ActingContext(
            original_role=HierarchyRole.MASTER,
            current_role=HierarchyRole.GR,
            organization_id=madnezz.organization.id,
            store_id=None,
            unit_id=madnezz.r2.id,
            switched_at=datetime.now(timezone.utc),
        )
        tree = service.get_tree(madnezz.master.id, acting_context=context)
        assert tree.role == HierarchyRole.GR
        assert [shape(root) for root in tree.roots] == [("R2", [("S2", [])])]


class TestTreeFiltering:

    def test_inactive_units_are_pruned(self, db_session, service, madnezz):
        madnezz.s2.deactivate()
        db_session.flush()
        (company,) = service.get_tree(madnezz.go.id).roots
        assert shape(company) == ("MADNEZZ", [("R1", [("S1", [])]), ("R2", [])])

    def test_gr_without_position_gets_no_roots(self, db_session, service, madnezz):
        madnezz.gr_position.deactivate()
        db_session.flush()
        tree = service.get_tree(madnezz.gr.id)
        assert tree.roots == ()
        assert tree.statistics.total_regions == 0

    def test_inactive_actor_gets_no_roots(self, service, madnezz):
        madnezz.go.deactivate()
        assert service.get_tree(madnezz.go.id).roots == ()

    def test_unknown_actor(self, service):
        with pytest.raises(NotFoundError):
            service.get_tree(str(uuid.uuid4()))
