"""
OrganizationUnit model: a node of the company -> regional -> store tree.

Tree invariants per organization:
- exactly one company unit, with no parent
- regional units whose parent is the company unit
- store units whose parent is a regional unit

(organization_id, unit_type, code) is unique, so a region code can repeat a
store code but never another region's code. Child units are deleted with
their parent.
"""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Column, String, Boolean, Enum, Index, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship

from retail_access.constants.hierarchy import OrganizationUnitType
from retail_access.db_base import Base
from retail_access.models.base import (
    TimestampMixin, OrganizationScopedMixin, generate_uuid, enum_values
)
from retail_access.models.validators import validate_code, validate_name
from retail_access.platform.errors import ValidationError

if TYPE_CHECKING:
    from retail_access.models.organization import Organization


class OrganizationUnit(Base, TimestampMixin, OrganizationScopedMixin):
    """Company, regional or store unit inside one organization."""

    __tablename__ = "organization_units"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="UUID primary key"
    )

    name = Column(
        String(255),
        nullable=False,
        comment="Display name of the unit"
    )

    code = Column(
        String(20),
        nullable=False,
        comment="Code, unique per organization and unit type"
    )

    unit_type = Column(
        Enum(
            OrganizationUnitType,
            name="organization_unit_type",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
        index=True,
        comment="company, regional or store"
    )

    parent_id = Column(
        String(36),
        ForeignKey("organization_units.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        comment="Parent unit (null only for the company root)"
    )

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="Inactive units are excluded from accessible-unit sets"
    )

    organization = relationship("Organization", back_populates="units")

    parent = relationship(
        "OrganizationUnit",
        remote_side=[id],
        back_populates="children",
    )

    children = relationship(
        "OrganizationUnit",
        back_populates="parent",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "unit_type", "code",
            name="uq_organization_units_org_type_code",
        ),
        Index(
            "ix_organization_units_org_parent_active",
            "organization_id", "parent_id", "is_active",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<OrganizationUnit(id={self.id}, code={self.code}, "
            f"type={self.unit_type}, parent_id={self.parent_id})>"
        )

    @classmethod
    def create(
        cls,
        organization_id: str,
        name: str,
        code: str,
        unit_type: OrganizationUnitType,
        parent: Optional["OrganizationUnit"] = None,
    ) -> "OrganizationUnit":
        """
        Build a unit, enforcing the depth rules of the tree.

        Raises:
            ValidationError: parent missing/extra, parent of the wrong type,
                or parent in another organization
        """
        unit_type = OrganizationUnitType(unit_type)
        expected_parent = unit_type.parent_type

        if expected_parent is None and parent is not None:
            raise ValidationError(
                "Company units cannot have a parent",
                details={"unit_type": unit_type.value},
            )
        if expected_parent is not None:
            if parent is None or parent.unit_type != expected_parent:
                raise ValidationError(
                    f"A {unit_type.value} unit must sit under a {expected_parent.value} unit",
                    details={"unit_type": unit_type.value},
                )
            if parent.organization_id != organization_id:
                raise ValidationError(
                    "Parent unit belongs to another organization",
                    details={"parent_id": parent.id},
                )

        return cls(
            id=generate_uuid(),
            organization_id=organization_id,
            name=validate_name(name),
            code=validate_code(code),
            unit_type=unit_type,
            parent_id=parent.id if parent is not None else None,
            is_active=True,
        )

    @property
    def depth(self) -> int:
        return self.unit_type.depth

    @property
    def has_parent(self) -> bool:
        return self.parent_id is not None

    def is_child_of(self, parent_id: str) -> bool:
        return self.parent_id == parent_id

    def update_name(self, name: str) -> None:
        self.name = validate_name(name)

    def activate(self) -> None:
        self.is_active = True

    def deactivate(self) -> None:
        self.is_active = False
