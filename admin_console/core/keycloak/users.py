"""Keycloak user management operations."""
from __future__ import annotations
import logging
from typing import Optional, List, Dict

from .client import KeycloakClient, user_id_from_location
from .exceptions import KeycloakAPIError, UserNotFoundError, UserAlreadyExistsError

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class UserService:
    """Service for managing Keycloak users."""

    def __init__(self, client: KeycloakClient):
        """Initialize user service.

        Args:
            client: Authenticated Keycloak client
        """
        self.client = client

    def list_users(self, realm: str) -> List[dict]:
        """Return every user of the realm with attributes included.

        Pages through the Admin API ``first``/``max`` window until a short
        page comes back.
        """
        users: List[dict] = []
        first = 0
        while True:
            resp = self.client.get(
                f"/admin/realms/{realm}/users",
                params={"briefRepresentation": "false", "first": first, "max": PAGE_SIZE},
            )
            page = resp.json() or []
            users.extend(page)
            if len(page) < PAGE_SIZE:
                return users
            first += PAGE_SIZE

    def get_user(self, realm: str, user_id: str) -> dict:
        """Return the full user representation.

        Raises:
            UserNotFoundError: If no user has this id
        """
        try:
            resp = self.client.get(f"/admin/realms/{realm}/users/{user_id}")
        except KeycloakAPIError as exc:
            if exc.status_code == 404:
                raise UserNotFoundError(f"User '{user_id}' not found in realm '{realm}'") from exc
            raise
        return resp.json()

    def get_user_by_username(self, realm: str, username: str) -> Optional[dict]:
        """Return the user representation that exactly matches the username.

        Args:
            realm: Realm name
            username: Username to search for

        Returns:
            User representation or None if not found
        """
        resp = self.client.get(f"/admin/realms/{realm}/users", params={"username": username, "exact": "true"})
        for user in resp.json() or []:
            if user.get("username", "").lower() == username.lower():
                return user
        return None

    def create_user(
        self,
        realm: str,
        email: str,
        required_actions: Optional[List[str]] = None,
        attributes: Optional[Dict[str, List[str]]] = None,
    ) -> str:
        """Create an enabled user whose username is its email and return its id.

        Raises:
            UserAlreadyExistsError: On 409 from Keycloak (message preserved)
        """
        payload = {
            "username": email,
            "email": email,
            "enabled": True,
            "emailVerified": False,
            "requiredActions": sorted(required_actions or []),
            "attributes": attributes or {},
        }
        try:
            resp = self.client.post(f"/admin/realms/{realm}/users", json=payload)
        except KeycloakAPIError as exc:
            if exc.status_code == 409:
                raise UserAlreadyExistsError(exc.message) from exc
            raise

        user_id = user_id_from_location(resp)
        if not user_id:
            created = self.get_user_by_username(realm, email)
            if not created:
                raise UserNotFoundError(f"User '{email}' created but not found in realm '{realm}'")
            user_id = created["id"]

        logger.info("[invite] User '%s' created (id=%s)", email, user_id)
        return user_id

    def update_attributes(self, realm: str, user_id: str, updates: Dict[str, List[str]]) -> dict:
        """Merge attribute values into the user representation and save it.

        Keycloak replaces the whole attribute map on PUT, so the current
        representation is read first.
        """
        user_rep = self.get_user(realm, user_id)
        attributes = dict(user_rep.get("attributes") or {})
        attributes.update(updates)
        user_rep["attributes"] = attributes
        self.client.put(f"/admin/realms/{realm}/users/{user_id}", json=user_rep)
        return user_rep

    def send_actions_email(
        self,
        realm: str,
        user_id: str,
        actions: List[str],
        client_id: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        lifespan: Optional[int] = None,
    ) -> None:
        """Ask Keycloak to email the user a link to complete the given required actions."""
        params: Dict[str, object] = {}
        if client_id:
            params["client_id"] = client_id
        if redirect_uri:
            params["redirect_uri"] = redirect_uri
        if lifespan:
            params["lifespan"] = lifespan
        self.client.put(
            f"/admin/realms/{realm}/users/{user_id}/execute-actions-email",
            json=sorted(actions),
            params=params or None,
        )
        logger.info("[invite] Actions email %s sent to user %s", sorted(actions), user_id)

    def delete_user(self, realm: str, user_id: str) -> None:
        """Permanently delete a user.

        Raises:
            UserNotFoundError: If no user has this id
        """
        try:
            self.client.delete(f"/admin/realms/{realm}/users/{user_id}")
        except KeycloakAPIError as exc:
            if exc.status_code == 404:
                raise UserNotFoundError(f"User '{user_id}' not found in realm '{realm}'") from exc
            raise
        logger.info("[delete] User %s deleted", user_id)

    def reset_password(self, realm: str, user_id: str, password: str, temporary: bool = False) -> None:
        """Set a new password credential for the user."""
        self.client.put(
            f"/admin/realms/{realm}/users/{user_id}/reset-password",
            json={"type": "password", "temporary": temporary, "value": password},
        )
