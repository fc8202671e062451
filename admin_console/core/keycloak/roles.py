"""Keycloak role management operations."""
from __future__ import annotations
import logging
from typing import Iterable, List

from .client import KeycloakClient
from .exceptions import KeycloakAPIError, RoleNotFoundError

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class RoleService:
    """Service for managing Keycloak realm roles."""

    def __init__(self, client: KeycloakClient):
        """Initialize role service.

        Args:
            client: Authenticated Keycloak client
        """
        self.client = client

    def get_role(self, realm: str, role_name: str) -> dict:
        """Return the realm role representation.

        Raises:
            RoleNotFoundError: If the role does not exist
        """
        try:
            resp = self.client.get(f"/admin/realms/{realm}/roles/{role_name}")
        except KeycloakAPIError as exc:
            if exc.status_code == 404:
                raise RoleNotFoundError(f"Role '{role_name}' not found in realm '{realm}'") from exc
            raise
        return resp.json()

    def create_role(self, realm: str, role_name: str, description: str = "") -> bool:
        """Idempotently create a realm-level role.

        Returns:
            True if the role was created, False if it already existed
        """
        try:
            self.get_role(realm, role_name)
            logger.info("[init] Role '%s' already exists", role_name)
            return False
        except RoleNotFoundError:
            pass

        payload = {"name": role_name}
        if description:
            payload["description"] = description
        self.client.post(f"/admin/realms/{realm}/roles", json=payload)
        logger.info("[init] Role '%s' created", role_name)
        return True

    def get_role_members(self, realm: str, role_name: str) -> List[dict]:
        """Return the users directly holding a realm role."""
        members: List[dict] = []
        first = 0
        while True:
            resp = self.client.get(
                f"/admin/realms/{realm}/roles/{role_name}/users",
                params={"first": first, "max": PAGE_SIZE},
            )
            page = resp.json() or []
            members.extend(page)
            if len(page) < PAGE_SIZE:
                return members
            first += PAGE_SIZE

    def get_user_realm_roles(self, realm: str, user_id: str) -> List[str]:
        """Return the names of realm roles mapped directly to the user."""
        resp = self.client.get(f"/admin/realms/{realm}/users/{user_id}/role-mappings/realm")
        return sorted({role.get("name") for role in resp.json() or [] if role.get("name")})

    def set_exclusive_role(self, realm: str, user_id: str, role_name: str, managed_roles: Iterable[str]) -> None:
        """Leave ``role_name`` as the only one of ``managed_roles`` mapped to the user.

        Roles outside ``managed_roles`` are not touched.
        """
        managed = {name.lower() for name in managed_roles}
        current = self.get_user_realm_roles(realm, user_id)

        stale = [name for name in current if name.lower() in managed and name.lower() != role_name.lower()]
        if stale:
            payload = [self._mapping(realm, name) for name in stale]
            self.client.delete(f"/admin/realms/{realm}/users/{user_id}/role-mappings/realm", json=payload)
            logger.info("[role] Removed %s from user %s", stale, user_id)

        if role_name.lower() not in {name.lower() for name in current}:
            self.client.post(
                f"/admin/realms/{realm}/users/{user_id}/role-mappings/realm",
                json=[self._mapping(realm, role_name)],
            )
            logger.info("[role] Granted '%s' to user %s", role_name, user_id)

    def _mapping(self, realm: str, role_name: str) -> dict:
        role_rep = self.get_role(realm, role_name)
        return {"id": role_rep["id"], "name": role_rep["name"]}
