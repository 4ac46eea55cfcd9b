"""
Context switching command and response schemas.

Commands validate their inputs on construction. Responses are immutable.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from retail_access.constants.hierarchy import HierarchyRole
from retail_access.models.validators import validate_optional_identifier


@dataclass
class SwitchContextCommand:
    """
    Request to impersonate ``target_role``.

    Whether the role is a permitted target is decided by the service so
    that authorization failures are reported before input failures.
    """
    target_role: HierarchyRole
    organization_id: Optional[str] = None
    store_id: Optional[str] = None
    unit_id: Optional[str] = None

    def __post_init__(self):
        self.target_role = HierarchyRole(self.target_role)
        self.organization_id = validate_optional_identifier(self.organization_id, "organization_id")
        self.store_id = validate_optional_identifier(self.store_id, "store_id")
        self.unit_id = validate_optional_identifier(self.unit_id, "unit_id")


class SwitchContextResponse(BaseModel):
    """Result of entering an impersonated context."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    original_role: HierarchyRole
    current_role: HierarchyRole
    organization_id: Optional[str] = None
    store_id: Optional[str] = None
    unit_id: Optional[str] = None
    switched_at: datetime


class ResetContextResponse(BaseModel):
    """Result of leaving an impersonated context."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    current_role: HierarchyRole
    was_switched: bool
