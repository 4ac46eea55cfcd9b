"""
Provisioning command and response schemas.

Commands are plain dataclasses normalized and validated in __post_init__
(ValidationError on bad input). Responses are frozen pydantic models.
"""

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict

from retail_access.constants.hierarchy import DepartmentType
from retail_access.models.validators import (
    validate_code,
    validate_email,
    validate_identifier,
    validate_name,
)
from retail_access.platform.errors import ValidationError


@dataclass
class NewUserData:
    """User to provision alongside an organization or store."""
    name: str
    email: str
    password_hash: str
    phone: Optional[str] = None

    def __post_init__(self):
        self.name = validate_name(self.name)
        self.email = validate_email(self.email)
        if not self.password_hash:
            raise ValidationError("password_hash is required", details={"field": "password_hash"})


@dataclass
class CreateOrganizationCommand:
    name: str
    code: str
    go_user: Optional[NewUserData] = None

    def __post_init__(self):
        self.name = validate_name(self.name)
        self.code = validate_code(self.code)


@dataclass
class CreateRegionCommand:
    organization_id: str
    name: str
    code: str

    def __post_init__(self):
        self.organization_id = validate_identifier(self.organization_id, "organization_id")
        self.name = validate_name(self.name)
        self.code = validate_code(self.code)


@dataclass
class CreateStoreCommand:
    organization_id: str
    region_id: str
    name: str
    code: str
    store_manager: Optional[NewUserData] = None

    def __post_init__(self):
        self.organization_id = validate_identifier(self.organization_id, "organization_id")
        self.region_id = validate_identifier(self.region_id, "region_id")
        self.name = validate_name(self.name)
        self.code = validate_code(self.code)


class ProvisionedUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    position_id: str


class CreateOrganizationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    organization_id: str
    name: str
    code: str
    company_unit_id: str
    departments: tuple[DepartmentType, ...]
    go_user: Optional[ProvisionedUser] = None


class CreateRegionResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    region_id: str
    organization_id: str
    parent_id: str
    name: str
    code: str


class CreateStoreResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    store_id: str
    organization_id: str
    region_id: str
    name: str
    code: str
    store_manager: Optional[ProvisionedUser] = None
