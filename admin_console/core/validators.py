"""Input validation helpers for console forms and API payloads."""
from __future__ import annotations
from typing import Any

from admin_console.core.models import Role

PASSWORD_MIN_LENGTH = 6


def validate_invite_email(raw: Any) -> str:
    """Validate the invite email.

    Only presence is checked; Keycloak owns format and uniqueness rules.

    Args:
        raw: Raw email input

    Returns:
        Trimmed email address

    Raises:
        ValueError: If the email is missing
    """
    email = raw.strip() if isinstance(raw, str) else ""
    if not email:
        raise ValueError("Email is required")
    return email


def validate_role(raw: Any, default: Role | None = None) -> Role:
    """Parse a console role, falling back to ``default`` when the input is empty.

    Raises:
        ValueError: If the role is missing (and no default) or unknown
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        if default is not None:
            return default
        raise ValueError("Role is required")
    return Role.parse(raw)


def validate_password(password: Any, min_length: int = PASSWORD_MIN_LENGTH) -> str:
    """Validate a new password.

    Args:
        password: Raw password input
        min_length: Minimum number of characters

    Returns:
        The password, unchanged

    Raises:
        ValueError: If the password is missing or too short
    """
    if not isinstance(password, str) or len(password) < min_length:
        raise ValueError(f"Password must be at least {min_length} characters")
    return password
