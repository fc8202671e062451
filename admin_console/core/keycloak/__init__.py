"""Keycloak Admin API client library.

This package provides a small, testable interface to the Keycloak Admin API
operations the console needs.

Architecture:
- client.py: HTTP client with service account authentication and auto-refresh
- users.py: User lifecycle operations (list, create, delete, password)
- roles.py: Realm role lookup and exclusive role assignment
- sessions.py: Active session lookups (last sign-in)
- exceptions.py: Typed exceptions for error handling

Usage:
    from admin_console.core.keycloak import KeycloakClient, UserService

    client = KeycloakClient("http://keycloak:8080")
    client.configure_service_account("demo", "automation-cli", "secret")

    users = UserService(client).list_users("demo")
"""
from .client import (
    KeycloakClient,
    extract_error_message,
    REQUEST_TIMEOUT,
)
from .exceptions import (
    KeycloakError,
    KeycloakAPIError,
    UserNotFoundError,
    UserAlreadyExistsError,
    RoleNotFoundError,
)
from .users import UserService
from .roles import RoleService
from .sessions import SessionService

__all__ = [
    # Client
    "KeycloakClient",
    "extract_error_message",
    "REQUEST_TIMEOUT",

    # Exceptions
    "KeycloakError",
    "KeycloakAPIError",
    "UserNotFoundError",
    "UserAlreadyExistsError",
    "RoleNotFoundError",

    # Services
    "UserService",
    "RoleService",
    "SessionService",
]
