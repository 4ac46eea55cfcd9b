"""
Position model: binds a user to a unit at a level, with department grants.

Position is the junction that gives a HierarchicalUser standing inside a
specific organization unit. Key rules:
- level must agree with the unit type (GO <-> company, GR <-> regional,
  STORE_MANAGER <-> store); validated in Position.create
- (user_id, organization_id, organization_unit_id) is unique
- deleting the organization, the unit or the user deletes the position
- "the active position" of a user is the active one with the latest
  activated_at (uniqueness is not enforced by the schema)
"""

from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Optional

from sqlalchemy import (
    Column, String, Boolean, DateTime, Enum, ForeignKey, Index, Table,
    UniqueConstraint
)
from sqlalchemy.orm import relationship

from retail_access.constants.hierarchy import DepartmentType, PositionLevel
from retail_access.db_base import Base
from retail_access.models.base import (
    TimestampMixin, OrganizationScopedMixin, generate_uuid, enum_values, utcnow
)
from retail_access.models.validators import validate_name
from retail_access.platform.errors import ValidationError

if TYPE_CHECKING:
    from retail_access.models.department import Department
    from retail_access.models.hierarchical_user import HierarchicalUser
    from retail_access.models.organization_unit import OrganizationUnit


position_departments = Table(
    "position_departments",
    Base.metadata,
    Column(
        "position_id",
        String(36),
        ForeignKey("positions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "department_id",
        String(36),
        ForeignKey("departments.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Position(Base, TimestampMixin, OrganizationScopedMixin):
    """A user's standing at one unit of one organization."""

    __tablename__ = "positions"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="UUID primary key"
    )

    organization_unit_id = Column(
        String(36),
        ForeignKey("organization_units.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Unit the position sits at"
    )

    user_id = Column(
        String(36),
        ForeignKey("hierarchical_users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Holder of the position"
    )

    level = Column(
        Enum(
            PositionLevel,
            name="position_level",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
        comment="go, gr or store_manager; must match the unit type"
    )

    title = Column(
        String(255),
        nullable=False,
        comment="Job title"
    )

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the position currently grants standing"
    )

    activated_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the position was last activated (latest wins)"
    )

    unit = relationship("OrganizationUnit", lazy="joined")

    user = relationship("HierarchicalUser", back_populates="positions")

    departments = relationship(
        "Department",
        secondary=position_departments,
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "organization_id", "organization_unit_id",
            name="uq_positions_user_org_unit",
        ),
        Index("ix_positions_user_active", "user_id", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<Position(id={self.id}, user_id={self.user_id}, level={self.level}, "
            f"unit_id={self.organization_unit_id}, is_active={self.is_active})>"
        )

    @classmethod
    def create(
        cls,
        unit: "OrganizationUnit",
        user_id: str,
        level: PositionLevel,
        title: str,
        departments: Iterable["Department"] = (),
    ) -> "Position":
        """
        Build an active position at ``unit``.

        Raises:
            ValidationError: level does not match the unit type, or a
                department belongs to another organization
        """
        level = PositionLevel(level)
        if unit.unit_type != level.unit_type:
            raise ValidationError(
                f"A {level.value} position must sit at a {level.unit_type.value} unit",
                details={"level": level.value, "unit_type": unit.unit_type.value},
            )

        departments = list(departments)
        for department in departments:
            if department.organization_id != unit.organization_id:
                raise ValidationError(
                    "Department belongs to another organization",
                    details={"department_id": department.id},
                )

        return cls(
            id=generate_uuid(),
            organization_id=unit.organization_id,
            organization_unit_id=unit.id,
            user_id=user_id,
            level=level,
            title=validate_name(title, "title"),
            is_active=True,
            activated_at=utcnow(),
            departments=departments,
        )

    @property
    def department_types(self) -> frozenset[DepartmentType]:
        return frozenset(
            d.department_type for d in self.departments if d.is_active
        )

    def has_access_to_department(self, department_id: str) -> bool:
        return any(d.id == department_id for d in self.departments)

    def activate(self, at: Optional[datetime] = None) -> None:
        self.is_active = True
        self.activated_at = at or utcnow()

    def deactivate(self) -> None:
        self.is_active = False
