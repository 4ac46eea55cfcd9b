"""
Organization unit repository: the read side of the hierarchy graph.

Traversal never runs against the database hop by hop. load_graph() pulls
every unit of the organization in one query and hands the rows to
HierarchyGraph, which does all walking in memory.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from retail_access.constants.hierarchy import OrganizationUnitType
from retail_access.models.organization_unit import OrganizationUnit
from retail_access.repositories.base_repo import BaseRepository
from retail_access.services.hierarchy_graph import HierarchyGraph

logger = logging.getLogger(__name__)


class OrganizationUnitRepository(BaseRepository[OrganizationUnit]):
    """Units of one organization."""

    def _get_model_class(self) -> type[OrganizationUnit]:
        return OrganizationUnit

    @staticmethod
    def lookup(db_session: Session, unit_id: Optional[str]) -> Optional[OrganizationUnit]:
        """
        Unit by id across all organizations.

        Only for existence checks that must tell "missing" apart from
        "belongs elsewhere". Never use the result to grant access.
        """
        if not unit_id:
            return None
        return db_session.query(OrganizationUnit).filter(OrganizationUnit.id == unit_id).first()

    def get_children(self, parent_id: str, active_only: bool = True) -> List[OrganizationUnit]:
        query = self._query().filter(OrganizationUnit.parent_id == parent_id)
        if active_only:
            query = query.filter(OrganizationUnit.is_active.is_(True))
        return query.order_by(OrganizationUnit.code).all()

    def get_all_active(self) -> List[OrganizationUnit]:
        return (
            self._query()
            .filter(OrganizationUnit.is_active.is_(True))
            .order_by(OrganizationUnit.unit_type, OrganizationUnit.code)
            .all()
        )

    def get_by_type(self, unit_type: OrganizationUnitType, active_only: bool = True) -> List[OrganizationUnit]:
        query = self._query().filter(OrganizationUnit.unit_type == OrganizationUnitType(unit_type))
        if active_only:
            query = query.filter(OrganizationUnit.is_active.is_(True))
        return query.order_by(OrganizationUnit.code).all()

    def find_by_code(self, code: str, unit_type: OrganizationUnitType) -> Optional[OrganizationUnit]:
        return (
            self._query()
            .filter(
                OrganizationUnit.code == code,
                OrganizationUnit.unit_type == OrganizationUnitType(unit_type),
            )
            .first()
        )

    def code_exists(self, code: str, unit_type: OrganizationUnitType) -> bool:
        return self.find_by_code(code, unit_type) is not None

    def find_company_unit(self) -> Optional[OrganizationUnit]:
        return (
            self._query()
            .filter(
                OrganizationUnit.unit_type == OrganizationUnitType.COMPANY,
                OrganizationUnit.parent_id.is_(None),
            )
            .first()
        )

    def load_graph(self, max_depth: Optional[int] = None) -> HierarchyGraph:
        """Every unit of the organization, active or not, in a single query."""
        units = self._query().all()
        logger.debug(
            "hierarchy.graph_loaded",
            extra={"organization_id": self.organization_id, "unit_count": len(units)},
        )
        return HierarchyGraph.from_units(self.organization_id, units, max_depth=max_depth)
