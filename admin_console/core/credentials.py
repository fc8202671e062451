"""Password change for the signed-in user."""
from __future__ import annotations
import logging

from admin_console.core.validators import PASSWORD_MIN_LENGTH, validate_password

logger = logging.getLogger(__name__)


def change_password(directory, user_id: str, password, min_length: int = PASSWORD_MIN_LENGTH) -> None:
    """Validate ``password`` and forward it to Keycloak for ``user_id``.

    Nothing is sent when validation fails.

    Raises:
        ValueError: password missing or shorter than ``min_length``
        KeycloakAPIError: Keycloak rejected the new password
    """
    validate_password(password, min_length=min_length)
    directory.set_password(user_id, password)
    logger.info("[account] Password updated for user %s", user_id)
