"""Input validation helpers for user data."""
from __future__ import annotations
from typing import Iterable

# Cognito string attribute values are limited to 2048 characters
MAX_ATTRIBUTE_LENGTH = 2048


class ValidationError(ValueError):
    """Malformed or missing client input (mapped to HTTP 400)."""
    pass


def require_user_id(user_id: str | None) -> str:
    """Validate the path identifier of a user-scoped request.

    Raises:
        ValidationError: If the identifier is missing or blank
    """
    if user_id is None or not str(user_id).strip():
        raise ValidationError("User ID is missing in the path.")
    return str(user_id).strip()


def validate_email(email: str) -> str:
    """Validate email address.

    Args:
        email: Email address to validate

    Returns:
        Normalized email address

    Raises:
        ValidationError: If email is invalid
    """
    if not isinstance(email, str):
        raise ValidationError("Invalid email format")
    email = email.strip().lower()
    if not email or "@" not in email:
        raise ValidationError("Invalid email format")

    local, domain = email.rsplit("@", 1)
    if not local or not domain or "." not in domain:
        raise ValidationError("Invalid email format")
    if len(email) > 254:
        raise ValidationError("Email exceeds maximum length")

    return email


def validate_name(name: str, field: str, required: bool = True) -> str:
    """Validate free-text profile fields (display name, department).

    Args:
        name: Value to validate
        field: Field name for error messages (e.g., "Name")
        required: Reject blank values when True

    Returns:
        Trimmed value ("" for an omitted optional field)

    Raises:
        ValidationError: If the value is invalid
    """
    if name is None:
        name = ""
    if not isinstance(name, str):
        raise ValidationError(f"{field} must be a string")
    name = name.strip()
    if not name:
        if required:
            raise ValidationError(f"{field} is required")
        return ""
    if len(name) > MAX_ATTRIBUTE_LENGTH:
        raise ValidationError(f"{field} exceeds maximum length")

    return name


def validate_password_fields(password: str, confirmation: str, minimum_length: int = 8) -> str:
    """Check a proposed password against its confirmation and a minimum length.

    Only a coarse check; the user pool's own password policy is authoritative.
    """
    if not password:
        raise ValidationError("New password is required.")
    if password != confirmation:
        raise ValidationError("New passwords do not match.")
    if len(password) < minimum_length:
        raise ValidationError(f"New password must be at least {minimum_length} characters.")
    return password


def validate_group_names(names: Iterable[str], catalog: Iterable[str]) -> list[str]:
    """Validate requested group names against the configured catalog.

    Returns:
        De-duplicated names in first-seen order

    Raises:
        ValidationError: If a name is not a string or not in the catalog
    """
    allowed = set(catalog)
    result: list[str] = []
    for name in names:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Group names must be non-empty strings")
        name = name.strip()
        if name not in allowed:
            raise ValidationError(f"Unknown group '{name}'. Allowed groups: {', '.join(sorted(allowed))}")
        if name not in result:
            result.append(name)
    return result
