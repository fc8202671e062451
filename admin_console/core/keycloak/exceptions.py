"""Errors raised by the Keycloak Admin API client and services."""


class KeycloakError(Exception):
    """Any failure talking to Keycloak (token acquisition, unexpected payloads)."""


class KeycloakAPIError(KeycloakError):
    """Keycloak answered with a 4xx/5xx status.

    ``message`` is Keycloak's own text (errorMessage / error_description /
    error) and is what the console shows to the user.
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class UserNotFoundError(KeycloakError):
    """No user with this id or username in the realm."""


class UserAlreadyExistsError(KeycloakError):
    """Invite target already exists; carries Keycloak's 409 message."""


class RoleNotFoundError(KeycloakError):
    """A console role is missing from the realm (run ``init-roles``)."""
