"""
Organization model for the multi-tenant retail hierarchy.

An Organization is the root of a tenant. It owns its organization units
(company -> regional -> store tree) and its departments; deleting the
organization cascades to both.

SECURITY: Organizations are created only by MASTER actors. Every other role
is confined to exactly one organization.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Column, String, Boolean, Index
from sqlalchemy.orm import relationship

from retail_access.db_base import Base
from retail_access.models.base import TimestampMixin, generate_uuid
from retail_access.models.validators import validate_code, validate_name

if TYPE_CHECKING:
    from retail_access.models.organization_unit import OrganizationUnit
    from retail_access.models.department import Department


class Organization(Base, TimestampMixin):
    """
    Root of a tenant.

    The code is a globally unique uppercase alphanumeric token. Name and
    status may change after creation; the code may not.
    """

    __tablename__ = "organizations"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="Internal UUID primary key"
    )

    name = Column(
        String(255),
        nullable=False,
        comment="Display name of the organization"
    )

    code = Column(
        String(20),
        nullable=False,
        unique=True,
        index=True,
        comment="Unique uppercase alphanumeric code (e.g. 'MADNEZZ')"
    )

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
        comment="Whether the organization is active"
    )

    units = relationship(
        "OrganizationUnit",
        back_populates="organization",
        lazy="dynamic",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    departments = relationship(
        "Department",
        back_populates="organization",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_organizations_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, code={self.code}, is_active={self.is_active})>"

    @classmethod
    def create(cls, name: str, code: str) -> "Organization":
        return cls(
            id=generate_uuid(),
            name=validate_name(name),
            code=validate_code(code),
            is_active=True,
        )

    def update_name(self, name: str) -> None:
        self.name = validate_name(name)

    def activate(self) -> None:
        self.is_active = True

    def deactivate(self) -> None:
        self.is_active = False
