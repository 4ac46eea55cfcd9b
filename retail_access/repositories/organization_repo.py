"""
Organization repository.

Organizations are the tenants themselves, so this repository is not
organization-scoped. Only MASTER workflows reach it.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from retail_access.database.session import translate_integrity_errors
from retail_access.models.organization import Organization

logger = logging.getLogger(__name__)


class OrganizationRepository:

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def get_by_id(self, organization_id: Optional[str]) -> Optional[Organization]:
        if not organization_id:
            return None
        return (
            self.db_session.query(Organization)
            .filter(Organization.id == organization_id)
            .first()
        )

    def find_by_code(self, code: str) -> Optional[Organization]:
        return self.db_session.query(Organization).filter(Organization.code == code).first()

    def code_exists(self, code: str) -> bool:
        return self.find_by_code(code) is not None

    def get_all_active(self) -> List[Organization]:
        return (
            self.db_session.query(Organization)
            .filter(Organization.is_active.is_(True))
            .order_by(Organization.code)
            .all()
        )

    def save(self, organization: Organization) -> Organization:
        with translate_integrity_errors(
            self.db_session, f"Organization code already exists: {organization.code}"
        ):
            self.db_session.add(organization)
            self.db_session.flush()
        return organization
