"""
HierarchicalUser model: an identity holding one of the four hierarchy roles.

CRITICAL SECURITY:
- hierarchy_role is fixed by the factory that created the user and is never
  reassigned
- password_hash is opaque here; hashing belongs to the auth layer
- context_data is only ever populated for MASTER users (context switching)

Context switching (MASTER impersonation):
- native: context_data is None, current_role == hierarchy_role == MASTER
- switched: context_data holds an ActingContext; current_role is the
  impersonated role and every authorization decision must use it
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import Column, String, DateTime, Enum, Index, JSON
from sqlalchemy.orm import relationship

from retail_access.constants.hierarchy import (
    HierarchyRole,
    UserStatus,
    WILDCARD_PERMISSION,
    get_default_permissions,
)
from retail_access.db_base import Base
from retail_access.models.base import TimestampMixin, generate_uuid, enum_values, utcnow
from retail_access.models.validators import (
    validate_email,
    validate_identifier,
    validate_name,
    validate_optional_identifier,
)
from retail_access.platform.errors import AuthorizationDeniedError, ValidationError

if TYPE_CHECKING:
    from retail_access.models.position import Position


@dataclass(frozen=True)
class ActingContext:
    """
    Typed view of a MASTER's active impersonation.

    store_id is the store unit for a STORE_MANAGER context; unit_id is the
    regional unit for a GR context (optional).
    """
    original_role: HierarchyRole
    current_role: HierarchyRole
    organization_id: Optional[str]
    store_id: Optional[str]
    unit_id: Optional[str]
    switched_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_role": self.original_role.value,
            "current_role": self.current_role.value,
            "organization_id": self.organization_id,
            "store_id": self.store_id,
            "unit_id": self.unit_id,
            "switched_at": self.switched_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActingContext":
        switched_at = data.get("switched_at")
        return cls(
            original_role=HierarchyRole(data.get("original_role", HierarchyRole.MASTER.value)),
            current_role=HierarchyRole(data["current_role"]),
            organization_id=data.get("organization_id"),
            store_id=data.get("store_id"),
            unit_id=data.get("unit_id"),
            switched_at=datetime.fromisoformat(switched_at) if switched_at else utcnow(),
        )

    @property
    def scope_unit_id(self) -> Optional[str]:
        """Unit the impersonated role is anchored at, when the context names one."""
        if self.current_role == HierarchyRole.STORE_MANAGER:
            return self.store_id
        if self.current_role == HierarchyRole.GR:
            return self.unit_id
        return None


class HierarchicalUser(Base, TimestampMixin):
    """
    User with a hierarchy role.

    Use the create_master / create_go / create_gr / create_store_manager
    factories; they fix the role and seed default permissions.
    """

    __tablename__ = "hierarchical_users"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="Internal UUID primary key"
    )

    name = Column(
        String(255),
        nullable=False,
        comment="Display name"
    )

    email = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Unique login email"
    )

    password_hash = Column(
        String(255),
        nullable=False,
        comment="Opaque password hash produced by the auth layer"
    )

    hierarchy_role = Column(
        Enum(
            HierarchyRole,
            name="hierarchy_role",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
        index=True,
        comment="MASTER, GO, GR or STORE_MANAGER; fixed at creation"
    )

    organization_id = Column(
        String(36),
        nullable=True,
        index=True,
        comment="Owning organization (null only for MASTER)"
    )

    store_id = Column(
        String(36),
        nullable=True,
        index=True,
        comment="Store unit (set only for STORE_MANAGER)"
    )

    phone = Column(
        String(50),
        nullable=True,
        comment="Contact phone"
    )

    permissions = Column(
        JSON,
        nullable=False,
        default=list,
        comment="Flat permission list; '*' grants everything"
    )

    context_data = Column(
        JSON,
        nullable=True,
        comment="Active MASTER impersonation (see ActingContext)"
    )

    status = Column(
        Enum(
            UserStatus,
            name="user_status",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
        default=UserStatus.ACTIVE,
        index=True,
        comment="active, inactive or suspended"
    )

    email_verified_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the email was verified"
    )

    last_login_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last successful login"
    )

    positions = relationship(
        "Position",
        back_populates="user",
        lazy="dynamic",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_hierarchical_users_org_role", "organization_id", "hierarchy_role"),
    )

    def __repr__(self) -> str:
        return f"<HierarchicalUser(id={self.id}, email={self.email}, role={self.hierarchy_role})>"

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def _build(
        cls,
        role: HierarchyRole,
        name: str,
        email: str,
        password_hash: str,
        organization_id: Optional[str] = None,
        store_id: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> "HierarchicalUser":
        if not password_hash:
            raise ValidationError("password_hash is required", details={"field": "password_hash"})
        return cls(
            id=generate_uuid(),
            name=validate_name(name),
            email=validate_email(email),
            password_hash=password_hash,
            hierarchy_role=role,
            organization_id=organization_id,
            store_id=store_id,
            phone=phone,
            permissions=get_default_permissions(role),
            context_data=None,
            status=UserStatus.ACTIVE,
            email_verified_at=utcnow(),
        )

    @classmethod
    def create_master(cls, name: str, email: str, password_hash: str, phone: Optional[str] = None):
        return cls._build(HierarchyRole.MASTER, name, email, password_hash, phone=phone)

    @classmethod
    def create_go(
        cls, name: str, email: str, password_hash: str, organization_id: str, phone: Optional[str] = None
    ):
        return cls._build(
            HierarchyRole.GO, name, email, password_hash,
            organization_id=validate_identifier(organization_id, "organization_id"),
            phone=phone,
        )

    @classmethod
    def create_gr(
        cls, name: str, email: str, password_hash: str, organization_id: str, phone: Optional[str] = None
    ):
        return cls._build(
            HierarchyRole.GR, name, email, password_hash,
            organization_id=validate_identifier(organization_id, "organization_id"),
            phone=phone,
        )

    @classmethod
    def create_store_manager(
        cls,
        name: str,
        email: str,
        password_hash: str,
        organization_id: str,
        store_id: str,
        phone: Optional[str] = None,
    ):
        return cls._build(
            HierarchyRole.STORE_MANAGER, name, email, password_hash,
            organization_id=validate_identifier(organization_id, "organization_id"),
            store_id=validate_identifier(store_id, "store_id"),
            phone=phone,
        )

    # ------------------------------------------------------------------
    # Role predicates (base identity, not the impersonated role)
    # ------------------------------------------------------------------

    def is_master(self) -> bool:
        return self.hierarchy_role == HierarchyRole.MASTER

    def is_go(self) -> bool:
        return self.hierarchy_role == HierarchyRole.GO

    def is_gr(self) -> bool:
        return self.hierarchy_role == HierarchyRole.GR

    def is_store_manager(self) -> bool:
        return self.hierarchy_role == HierarchyRole.STORE_MANAGER

    def can_access_user(self, target: "HierarchicalUser") -> bool:
        return self.hierarchy_role.can_access_level(target.hierarchy_role)

    def can_manage_user(self, target: "HierarchicalUser") -> bool:
        return self.hierarchy_role.can_manage_level(target.hierarchy_role)

    # ------------------------------------------------------------------
    # Context switching
    # ------------------------------------------------------------------

    @property
    def acting_context(self) -> Optional[ActingContext]:
        if not self.context_data:
            return None
        return ActingContext.from_dict(self.context_data)

    @property
    def is_context_switched(self) -> bool:
        return self.is_master() and self.acting_context is not None

    @property
    def current_role(self) -> HierarchyRole:
        """Role every authorization decision must use."""
        context = self.acting_context
        if self.is_master() and context is not None:
            return context.current_role
        return self.hierarchy_role

    def switch_context(
        self,
        target_role: HierarchyRole,
        organization_id: Optional[str] = None,
        store_id: Optional[str] = None,
        unit_id: Optional[str] = None,
    ) -> ActingContext:
        """
        Enter an impersonated context.

        Preconditions on the target (role allowed, organization/store exist
        and match) are the caller's job; this only enforces MASTER.

        Raises:
            AuthorizationDeniedError: user is not MASTER (state unchanged)
        """
        if not self.is_master():
            raise AuthorizationDeniedError(
                "Only MASTER users can switch context",
                details={"user_id": self.id},
            )
        context = ActingContext(
            original_role=self.hierarchy_role,
            current_role=HierarchyRole(target_role),
            organization_id=organization_id,
            store_id=store_id,
            unit_id=unit_id,
            switched_at=utcnow(),
        )
        self.context_data = context.to_dict()
        return context

    def reset_context(self) -> None:
        """
        Leave any impersonated context.

        Raises:
            AuthorizationDeniedError: user is not MASTER
        """
        if not self.is_master():
            raise AuthorizationDeniedError(
                "Only MASTER users can reset context",
                details={"user_id": self.id},
            )
        self.context_data = None

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def has_permission(self, permission: str) -> bool:
        granted = self.permissions or []
        return WILDCARD_PERMISSION in granted or permission in granted

    def add_permission(self, permission: str) -> None:
        if not self.has_permission(permission):
            # Reassign so the JSON column is flagged dirty
            self.permissions = list(self.permissions or []) + [permission]

    def remove_permission(self, permission: str) -> None:
        self.permissions = [p for p in (self.permissions or []) if p != permission]

    # ------------------------------------------------------------------
    # Profile and lifecycle
    # ------------------------------------------------------------------

    def update_name(self, name: str) -> None:
        self.name = validate_name(name)

    def update_email(self, email: str) -> None:
        self.email = validate_email(email)
        self.email_verified_at = None

    def update_phone(self, phone: Optional[str]) -> None:
        self.phone = phone

    def change_password(self, password_hash: str) -> None:
        if not password_hash:
            raise ValidationError("password_hash is required", details={"field": "password_hash"})
        self.password_hash = password_hash

    def assign_to_organization(self, organization_id: str) -> None:
        self.organization_id = validate_identifier(organization_id, "organization_id")

    def assign_to_store(self, store_id: str) -> None:
        self.store_id = validate_optional_identifier(store_id, "store_id")

    def remove_from_store(self) -> None:
        self.store_id = None

    def verify_email(self) -> None:
        self.email_verified_at = utcnow()

    def is_email_verified(self) -> bool:
        return self.email_verified_at is not None

    def activate(self) -> None:
        self.status = UserStatus.ACTIVE

    def deactivate(self) -> None:
        self.status = UserStatus.INACTIVE

    def suspend(self) -> None:
        self.status = UserStatus.SUSPENDED

    def record_login(self) -> None:
        self.last_login_at = utcnow()

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def can_login(self) -> bool:
        return self.is_active
