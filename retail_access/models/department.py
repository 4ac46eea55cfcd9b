"""
Department model: a functional capability area of an organization.

Departments are orthogonal to the unit tree. Each organization has at most
one department per DepartmentType.
"""

from sqlalchemy import Column, String, Boolean, Enum, UniqueConstraint
from sqlalchemy.orm import relationship

from retail_access.constants.hierarchy import DepartmentType
from retail_access.db_base import Base
from retail_access.models.base import (
    TimestampMixin, OrganizationScopedMixin, generate_uuid, enum_values
)


class Department(Base, TimestampMixin, OrganizationScopedMixin):
    """One department of an organization."""

    __tablename__ = "departments"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="UUID primary key"
    )

    department_type = Column(
        Enum(
            DepartmentType,
            name="department_type",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
        comment="Closed set: administrative, financial, marketing, operations, trade, macro"
    )

    name = Column(
        String(255),
        nullable=False,
        comment="Display name"
    )

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the department is active"
    )

    organization = relationship("Organization", back_populates="departments")

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "department_type",
            name="uq_departments_org_type",
        ),
    )

    def __repr__(self) -> str:
        return f"<Department(id={self.id}, type={self.department_type}, organization_id={self.organization_id})>"

    @classmethod
    def create(cls, organization_id: str, department_type: DepartmentType) -> "Department":
        department_type = DepartmentType(department_type)
        return cls(
            id=generate_uuid(),
            organization_id=organization_id,
            department_type=department_type,
            name=department_type.display_name,
            is_active=True,
        )
