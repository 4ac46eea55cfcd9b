"""
Value validation for identifiers, names, codes and emails.

Each validator returns the normalized value or raises ValidationError.
Validation happens at construction time (commands, factories); nothing
downstream re-validates.
"""

import re
import uuid
from typing import Optional

from retail_access.platform.errors import ValidationError

# Uppercase alphanumeric token, e.g. "MADNEZZ", "RN", "S001"
CODE_REGEX = re.compile(r"^[A-Z0-9]+$")
EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")

MIN_CODE_LENGTH = 2
MAX_CODE_LENGTH = 20
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 255


def validate_identifier(value: Optional[str], field: str) -> str:
    """Validate a UUID string identifier and return its canonical form."""
    if not value:
        raise ValidationError(f"{field} is required", details={"field": field})
    try:
        return str(uuid.UUID(str(value)))
    except (ValueError, AttributeError, TypeError):
        raise ValidationError(
            f"Invalid {field} format: {value}",
            details={"field": field, "value": str(value)},
        )


def validate_optional_identifier(value: Optional[str], field: str) -> Optional[str]:
    if value is None:
        return None
    return validate_identifier(value, field)


def validate_name(value: Optional[str], field: str = "name") -> str:
    """Trimmed name between 2 and 255 characters."""
    name = (value or "").strip()
    if not name:
        raise ValidationError(f"{field} cannot be empty", details={"field": field})
    if len(name) < MIN_NAME_LENGTH:
        raise ValidationError(
            f"{field} must be at least {MIN_NAME_LENGTH} characters long",
            details={"field": field},
        )
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"{field} cannot exceed {MAX_NAME_LENGTH} characters",
            details={"field": field},
        )
    return name


def validate_code(value: Optional[str], field: str = "code") -> str:
    """
    Uppercase alphanumeric code.

    Surrounding whitespace is stripped; lowercase input is rejected rather than
    silently upper-cased so that "rn" and "RN" never both exist.
    """
    code = (value or "").strip()
    if not (MIN_CODE_LENGTH <= len(code) <= MAX_CODE_LENGTH):
        raise ValidationError(
            f"{field} must be between {MIN_CODE_LENGTH} and {MAX_CODE_LENGTH} characters",
            details={"field": field, "value": code},
        )
    if not CODE_REGEX.match(code):
        raise ValidationError(
            f"{field} must be uppercase alphanumeric: {code}",
            details={"field": field, "value": code},
        )
    return code


def validate_email(value: Optional[str]) -> str:
    email = (value or "").strip()
    if not EMAIL_REGEX.match(email) or len(email) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Invalid email format: {email}",
            details={"field": "email"},
        )
    return email
