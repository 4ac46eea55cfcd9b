"""
Base repository with strict organization isolation enforcement.

CRITICAL: Every query of an organization-scoped repository is filtered by
the repository's organization_id. No query can reach another tenant's rows.

Repositories never commit. They add and flush inside the caller's unit of
work (see database.session.transaction).
"""

import logging
from abc import ABC, abstractmethod
from typing import TypeVar, Generic, Optional, List

from sqlalchemy.orm import Session

from retail_access.database.session import translate_integrity_errors
from retail_access.db_base import Base
from retail_access.platform.errors import AuthorizationDeniedError

logger = logging.getLogger(__name__)

# Type variable for repository models
T = TypeVar("T", bound=Base)


class OrganizationIsolationError(AuthorizationDeniedError):
    """Raised when organization isolation is violated."""

    error_code = "organization_isolation_violation"


class BaseRepository(Generic[T], ABC):
    """
    Base repository with mandatory organization_id enforcement.

    All queries are automatically scoped by organization_id.
    """

    def __init__(self, db_session: Session, organization_id: str):
        """
        Initialize repository with organization context.

        Args:
            db_session: SQLAlchemy database session
            organization_id: Organization the repository is confined to

        Raises:
            ValueError: If organization_id is empty or None
        """
        if not organization_id:
            raise ValueError("organization_id is required and cannot be empty")

        self.db_session = db_session
        self.organization_id = organization_id
        self._model_class = self._get_model_class()

    @abstractmethod
    def _get_model_class(self) -> type[T]:
        """Return the SQLAlchemy model class for this repository."""
        pass

    def _query(self):
        """Query over the model, scoped to this organization."""
        query = self.db_session.query(self._model_class)
        return query.filter(self._model_class.organization_id == self.organization_id)

    def _validate_organization_id(self, organization_id: Optional[str], operation: str):
        """
        Validate that a provided organization_id matches the repository's.

        SECURITY: Prevents cross-tenant operations even if an id is passed.
        """
        if organization_id and organization_id != self.organization_id:
            logger.error(
                "Organization ID mismatch detected",
                extra={
                    "repository_organization_id": self.organization_id,
                    "provided_organization_id": organization_id,
                    "operation": operation,
                }
            )
            raise OrganizationIsolationError(
                f"Organization ID mismatch: repository scoped to {self.organization_id}, "
                f"but operation attempted with {organization_id}",
                details={"operation": operation},
            )

    def get_by_id(self, entity_id: str) -> Optional[T]:
        """Entity by id, or None when absent or owned by another organization."""
        return self._query().filter(self._model_class.id == entity_id).first()

    def get_all(self, limit: Optional[int] = None, offset: Optional[int] = None) -> List[T]:
        query = self._query()
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)
        return query.all()

    def save(self, entity: T, conflict_message: str = "Duplicate record") -> T:
        """
        Add and flush an entity belonging to this organization.

        Raises:
            OrganizationIsolationError: entity belongs to another organization
            ConflictError: a unique constraint rejected the flush
        """
        self._validate_organization_id(entity.organization_id, "save")
        entity.organization_id = self.organization_id

        with translate_integrity_errors(self.db_session, conflict_message):
            self.db_session.add(entity)
            self.db_session.flush()

        logger.debug(
            "Entity saved",
            extra={
                "organization_id": self.organization_id,
                "entity_id": getattr(entity, "id", None),
                "entity_type": self._model_class.__name__,
            }
        )
        return entity

    def count(self) -> int:
        return self._query().count()

    def exists(self, entity_id: str) -> bool:
        return self.get_by_id(entity_id) is not None
