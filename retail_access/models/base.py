"""
Base mixins for database models.

Provides common functionality:
- TimestampMixin: created_at, updated_at timestamps
- OrganizationScopedMixin: organization_id for tenant isolation
- generate_uuid: UUID generation for primary keys
- enum_values: persist str enums by value rather than by member name
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, ForeignKey, func
from sqlalchemy.orm import declared_attr


def generate_uuid() -> str:
    """Generate a UUID4 string for use as a primary key default."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enum_values(enum_cls) -> list[str]:
    """values_callable for sqlalchemy.Enum columns."""
    return [member.value for member in enum_cls]


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Timestamp when record was last updated"
    )


class OrganizationScopedMixin:
    """
    Mixin that adds organization_id for multi-tenant isolation.

    Deleting the organization cascades to every scoped row.
    """

    @declared_attr
    def organization_id(cls):
        return Column(
            String(36),
            ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
            comment="Owning organization (tenant)"
        )
