"""
Structured error classes for hierarchy access control.

Every failure the core can report maps to one of four kinds:
- ValidationError: malformed input (bad enum value, identifier, name, code)
- AuthorizationDeniedError: a role/ownership/hierarchy precondition failed
- NotFoundError: a referenced organization/unit/store/user does not exist
- ConflictError: a duplicate code or email (pre-check or unique constraint)

All of them are recoverable by the caller. The http_status attribute lets an
outer HTTP layer translate errors without its own lookup table.
"""

from typing import Any, Optional

from fastapi import status


class HierarchyAccessError(Exception):
    """Base exception for hierarchy access control errors."""

    error_code = "hierarchy_error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(HierarchyAccessError, ValueError):
    """Raised when a value fails validation at construction."""

    error_code = "validation_error"
    http_status = status.HTTP_422_UNPROCESSABLE_CONTENT


class AuthorizationDeniedError(HierarchyAccessError):
    """Raised when the actor's role or scope does not allow the operation."""

    error_code = "authorization_denied"
    http_status = status.HTTP_403_FORBIDDEN


class NotFoundError(HierarchyAccessError):
    """Raised when a referenced entity does not exist."""

    error_code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} not found",
            details={"entity": entity, "id": entity_id},
        )


class ConflictError(HierarchyAccessError):
    """Raised when a uniqueness rule (code, email) is violated."""

    error_code = "conflict"
    http_status = status.HTTP_409_CONFLICT
