"""
Directory Service Layer - user listing and lifecycle over Keycloak

This module is the single place where console operations (list, invite,
role change, delete, password change) turn into Keycloak Admin API calls.
It is used by the HTML console, the JSON API, and the CLI.

Architecture:
    Admin page (/admin/*) ───┐
    JSON API (/api/*) ───────┼──> directory.py ──> core.keycloak ──> Keycloak
    scripts/directory_cli ───┘

Every operation is a single attempt: nothing is retried. Failures surface as
DirectoryError carrying an HTTP status and the message to show the user.
"""

from __future__ import annotations
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional

import requests

from admin_console.core.keycloak import (
    KeycloakClient,
    KeycloakAPIError,
    UserService,
    RoleService,
    SessionService,
    UserNotFoundError,
    UserAlreadyExistsError,
    RoleNotFoundError,
)
from admin_console.core.models import (
    DirectoryUser,
    Profile,
    Role,
    LAST_SIGN_IN_ATTR,
    PROFILE_CREATED_ATTR,
    PROFILE_UPDATED_ATTR,
    recorded_sign_in,
    to_iso,
    utc_now,
)
from admin_console.core.validators import validate_invite_email, validate_role
from scripts import audit

logger = logging.getLogger(__name__)

# Required actions an invited user completes from the invitation email
INVITE_ACTIONS = ["UPDATE_PASSWORD", "VERIFY_EMAIL"]

CONSOLE_ROLE_NAMES = [role.value for role in Role]


# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions
# ─────────────────────────────────────────────────────────────────────────────

class DirectoryError(Exception):
    """Directory operation failure with HTTP status and user-facing detail."""

    def __init__(self, status: int, detail: str):
        self.status = status
        self.detail = detail
        super().__init__(detail)

    def to_dict(self) -> dict:
        """Convert to the JSON error body used by the API."""
        return {"error": self.detail}


@contextmanager
def translate_errors() -> Iterator[None]:
    """Map validation, Keycloak and transport failures to DirectoryError."""
    try:
        yield
    except DirectoryError:
        raise
    # before ValueError: requests' JSONDecodeError subclasses both
    except requests.RequestException as exc:
        raise DirectoryError(502, f"Identity service unavailable: {exc}") from exc
    except ValueError as exc:
        raise DirectoryError(400, str(exc)) from exc
    except UserNotFoundError as exc:
        raise DirectoryError(404, "User not found") from exc
    except UserAlreadyExistsError as exc:
        raise DirectoryError(409, str(exc)) from exc
    except RoleNotFoundError as exc:
        raise DirectoryError(500, str(exc)) from exc
    except KeycloakAPIError as exc:
        # 401/403 mean the service account itself was refused, not the caller
        status = exc.status_code if 400 <= exc.status_code < 500 and exc.status_code not in (401, 403) else 502
        raise DirectoryError(status, exc.message) from exc


class DirectoryService:
    """Console operations on the users of one Keycloak realm."""

    def __init__(
        self,
        client: KeycloakClient,
        realm: str,
        *,
        invite_client_id: Optional[str] = None,
        invite_redirect_uri: Optional[str] = None,
        invite_lifespan: Optional[int] = None,
    ):
        self.client = client
        self.realm = realm
        self.invite_client_id = invite_client_id
        self.invite_redirect_uri = invite_redirect_uri
        self.invite_lifespan = invite_lifespan
        self.users = UserService(client)
        self.roles = RoleService(client)
        self.sessions = SessionService(client)

    @classmethod
    def from_config(cls, cfg) -> "DirectoryService":
        """Build a service-account backed directory from AppConfig."""
        client = KeycloakClient(cfg.keycloak_base_url)
        client.configure_service_account(
            cfg.keycloak_service_realm,
            cfg.keycloak_service_client_id,
            cfg.keycloak_service_client_secret,
        )
        return cls(
            client,
            cfg.keycloak_realm,
            invite_client_id=cfg.oidc_client_id,
            invite_redirect_uri=cfg.invite_redirect_uri or None,
            invite_lifespan=cfg.invite_lifespan_seconds or None,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────

    def list_users(self) -> List[DirectoryUser]:
        """List every realm user paired with its profile, sorted by email."""
        with translate_errors():
            kc_users = self.users.list_users(self.realm)
            role_names = self._role_names_by_user()
            result = [
                DirectoryUser.from_keycloak(
                    kc_user,
                    role=Role.highest(role_names.get(kc_user.get("id"), [])),
                    last_sign_in_at=self._last_sign_in(kc_user),
                )
                for kc_user in kc_users
                if kc_user.get("id") and not kc_user.get("serviceAccountClientLink")
            ]
        result.sort(key=lambda user: user.email.lower())
        return result

    def _last_sign_in(self, kc_user: dict) -> Optional[datetime]:
        # Users who signed in before sign-ins were recorded only have sessions
        return recorded_sign_in(kc_user) or self.sessions.last_sign_in(self.realm, kc_user["id"])

    def get_profile(self, user_id: str) -> Optional[Profile]:
        """Return the user's profile, or None when the user holds no console role."""
        with translate_errors():
            kc_user = self.users.get_user(self.realm, user_id)
            role = Role.highest(self.roles.get_user_realm_roles(self.realm, user_id))
        if role is None:
            return None
        return Profile.from_keycloak(kc_user, role)

    def find_user_id(self, email: str) -> str:
        """Resolve a user id from the email (invited users have username == email).

        Raises:
            DirectoryError: 404 if no such user
        """
        with translate_errors():
            kc_user = self.users.get_user_by_username(self.realm, email.strip().lower())
        if not kc_user:
            raise DirectoryError(404, "User not found")
        return kc_user["id"]

    def _role_names_by_user(self) -> Dict[str, List[str]]:
        mapping: Dict[str, List[str]] = {}
        for role_name in CONSOLE_ROLE_NAMES:
            try:
                members = self.roles.get_role_members(self.realm, role_name)
            except KeycloakAPIError as exc:
                if exc.status_code != 404:
                    raise
                logger.warning("[directory] Role '%s' missing in realm '%s'; run init-roles", role_name, self.realm)
                continue
            for member in members:
                mapping.setdefault(member.get("id"), []).append(role_name)
        return mapping

    # ─────────────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────────────

    def invite_user(self, email: str, role=Role.NORMAL, operator: str = "system") -> str:
        """Create a user, give it a profile, and email the invitation.

        If the invitation email cannot be sent the new user is removed again
        so a failed invite leaves nothing behind.

        Returns:
            The new user's id

        Raises:
            DirectoryError: 400 on invalid input, 409 when the user exists,
                other statuses as reported by Keycloak
        """
        target = email if isinstance(email, str) else ""
        try:
            with translate_errors():
                target = validate_invite_email(email)
                parsed_role = validate_role(role, default=Role.NORMAL)
                now = to_iso(utc_now())
                user_id = self.users.create_user(
                    self.realm,
                    target,
                    required_actions=INVITE_ACTIONS,
                    attributes={PROFILE_CREATED_ATTR: [now], PROFILE_UPDATED_ATTR: [now]},
                )
                try:
                    self.roles.set_exclusive_role(self.realm, user_id, parsed_role.value, CONSOLE_ROLE_NAMES)
                    self.users.send_actions_email(
                        self.realm,
                        user_id,
                        INVITE_ACTIONS,
                        client_id=self.invite_client_id,
                        redirect_uri=self.invite_redirect_uri,
                        lifespan=self.invite_lifespan,
                    )
                except Exception:
                    self._discard_user(user_id)
                    raise
        except DirectoryError as exc:
            self._audit("invite", target, operator, {"role": getattr(role, "value", role), "error": exc.detail, "status": exc.status}, False)
            raise

        self._audit("invite", target, operator, {"user_id": user_id, "role": parsed_role.value}, True)
        return user_id

    def update_role(self, user_id: str, role, operator: str = "system") -> None:
        """Make ``role`` the user's only console role and stamp the profile."""
        try:
            with translate_errors():
                parsed_role = validate_role(role)
                kc_user = self.users.get_user(self.realm, user_id)
                self.roles.set_exclusive_role(self.realm, user_id, parsed_role.value, CONSOLE_ROLE_NAMES)
                now = to_iso(utc_now())
                updates = {PROFILE_UPDATED_ATTR: [now]}
                if not (kc_user.get("attributes") or {}).get(PROFILE_CREATED_ATTR):
                    updates[PROFILE_CREATED_ATTR] = [now]
                self.users.update_attributes(self.realm, user_id, updates)
        except DirectoryError as exc:
            self._audit("role_change", user_id, operator, {"role": getattr(role, "value", role), "error": exc.detail, "status": exc.status}, False)
            raise

        self._audit("role_change", user_id, operator, {"email": kc_user.get("email"), "role": parsed_role.value}, True)

    def delete_user(self, user_id: str, operator: str = "system", acting_user_id: Optional[str] = None) -> None:
        """Permanently delete a user.

        Raises:
            DirectoryError: 400 when ``user_id`` is the acting user's own id,
                404 when the user does not exist
        """
        try:
            if acting_user_id and user_id == acting_user_id:
                raise DirectoryError(400, "You cannot delete your own account")
            with translate_errors():
                self.users.delete_user(self.realm, user_id)
        except DirectoryError as exc:
            self._audit("delete", user_id, operator, {"error": exc.detail, "status": exc.status}, False)
            raise

        self._audit("delete", user_id, operator, {}, True)

    def record_sign_in(self, user_id: str) -> None:
        """Stamp the sign-in time on the user so it outlives the session."""
        with translate_errors():
            self.users.update_attributes(self.realm, user_id, {LAST_SIGN_IN_ATTR: [to_iso(utc_now())]})

    def set_password(self, user_id: str, password: str) -> None:
        """Replace the user's password. Keycloak errors propagate unchanged."""
        self.users.reset_password(self.realm, user_id, password, temporary=False)

    def check_ready(self) -> None:
        """Obtain (or reuse) the service-account token.

        Raises:
            DirectoryError: 502 when Keycloak is unreachable or refuses the client
        """
        with translate_errors():
            self.client.ensure_token()

    def ensure_console_roles(self) -> List[str]:
        """Create missing console roles; return the names that were created."""
        with translate_errors():
            return [
                role.value
                for role in Role
                if self.roles.create_role(self.realm, role.value, description=f"Admin console role: {role.label}")
            ]

    # ─────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────

    def _discard_user(self, user_id: str) -> None:
        try:
            self.users.delete_user(self.realm, user_id)
            logger.info("[invite] Rolled back user %s after failed invitation", user_id)
        except Exception as exc:
            logger.error("[invite] Rollback of user %s failed: %s", user_id, exc)

    def _audit(self, event_type, target: str, operator: str, details: dict, success: bool) -> None:
        audit.safe_log_directory_event(
            event_type,
            target,
            operator=operator,
            realm=self.realm,
            details=details,
            success=success,
        )
