"""Keycloak session lookups."""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import List, Dict, Optional

from .client import KeycloakClient

logger = logging.getLogger(__name__)


class SessionService:
    """Service for reading Keycloak user sessions."""

    def __init__(self, client: KeycloakClient):
        """Initialize session service.

        Args:
            client: Authenticated Keycloak client
        """
        self.client = client

    def get_user_sessions(self, realm: str, user_id: str) -> List[Dict]:
        """Get all active sessions for a user.

        Raises:
            KeycloakAPIError: When the lookup is refused (e.g. no view-users)
        """
        resp = self.client.get(f"/admin/realms/{realm}/users/{user_id}/sessions")
        return resp.json() or []

    def last_sign_in(self, realm: str, user_id: str) -> Optional[datetime]:
        """Return the start time of the user's most recent active session, if any."""
        starts = [
            session.get("start")
            for session in self.get_user_sessions(realm, user_id)
            if isinstance(session.get("start"), (int, float))
        ]
        if not starts:
            return None
        logger.debug("[sessions] %s has %d active session(s)", user_id, len(starts))
        return datetime.fromtimestamp(max(starts) / 1000, tz=timezone.utc)
