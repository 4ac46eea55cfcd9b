"""
Hierarchical user repository.

Users are not organization-scoped at this level: MASTER users have no
organization and the actor of a request is always looked up by id first.
Use list_by_organization / list_by_stores for tenant listings.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from retail_access.constants.hierarchy import HierarchyRole
from retail_access.database.session import translate_integrity_errors
from retail_access.models.hierarchical_user import HierarchicalUser

logger = logging.getLogger(__name__)


class HierarchicalUserRepository:

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def get_by_id(self, user_id: Optional[str]) -> Optional[HierarchicalUser]:
        if not user_id:
            return None
        return (
            self.db_session.query(HierarchicalUser)
            .filter(HierarchicalUser.id == user_id)
            .first()
        )

    def find_by_email(self, email: str) -> Optional[HierarchicalUser]:
        return (
            self.db_session.query(HierarchicalUser)
            .filter(HierarchicalUser.email == email.strip())
            .first()
        )

    def email_exists(self, email: str) -> bool:
        return self.find_by_email(email) is not None

    def list_by_organization(
        self, organization_id: str, role: Optional[HierarchyRole] = None
    ) -> List[HierarchicalUser]:
        query = self.db_session.query(HierarchicalUser).filter(
            HierarchicalUser.organization_id == organization_id
        )
        if role is not None:
            query = query.filter(HierarchicalUser.hierarchy_role == HierarchyRole(role))
        return query.order_by(HierarchicalUser.email).all()

    def list_by_stores(self, organization_id: str, store_ids: Iterable[str]) -> List[HierarchicalUser]:
        store_ids = list(store_ids)
        if not store_ids:
            return []
        return (
            self.db_session.query(HierarchicalUser)
            .filter(
                HierarchicalUser.organization_id == organization_id,
                HierarchicalUser.store_id.in_(store_ids),
            )
            .order_by(HierarchicalUser.email)
            .all()
        )

    def save(self, user: HierarchicalUser) -> HierarchicalUser:
        """
        Add and flush a user.

        Raises:
            ConflictError: the email is already taken
        """
        with translate_integrity_errors(self.db_session, f"Email already exists: {user.email}"):
            self.db_session.add(user)
            self.db_session.flush()
        return user
