"""Session guard and OIDC session helpers.

The console session (caller's user id, email and profile) is resolved once
per request from the OIDC session plus a single profile read against
Keycloak, and stored on ``flask.g.console_session``.
"""
from __future__ import annotations
import logging
import time
from functools import wraps
from typing import Optional

import requests
from flask import session, current_app, g, redirect, jsonify

from admin_console.core.directory import DirectoryError
from admin_console.core.keycloak import KeycloakError
from admin_console.core.models import ConsoleSession

logger = logging.getLogger(__name__)


def get_directory():
    """Directory service registered by create_app()."""
    return current_app.extensions["directory"]


def is_authenticated() -> bool:
    """Check if user is authenticated."""
    return bool(session.get("token"))


def current_identity() -> tuple[str, str]:
    """Return (user id, email) of the signed-in user from the stored claims."""
    userinfo = session.get("userinfo") or {}
    id_claims = session.get("id_claims") or {}
    user_id = ""
    email = ""
    for source in (userinfo, id_claims):
        if not isinstance(source, dict):
            continue
        user_id = user_id or source.get("sub") or ""
        email = email or source.get("email") or source.get("preferred_username") or ""
    return user_id, email


def load_console_session(directory) -> Optional[ConsoleSession]:
    """Resolve the caller's session with one profile read.

    Returns None when nobody is signed in or the read fails; callers treat
    that the same as "not an admin".
    """
    if not is_authenticated():
        return None
    user_id, email = current_identity()
    if not user_id:
        logger.warning("[rbac] Session token present but no subject claim")
        return None
    try:
        profile = directory.get_profile(user_id)
    except (DirectoryError, KeycloakError, requests.RequestException) as exc:
        logger.warning("[rbac] Profile lookup failed for %s: %s", user_id, exc)
        return None
    return ConsoleSession(user_id=user_id, email=email or (profile.email if profile else ""), profile=profile)


def require_console_admin(view):
    """Redirect to the application root unless the caller is a console admin."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        console_session = load_console_session(get_directory())
        if console_session is None or not console_session.is_admin:
            return redirect("/")
        g.console_session = console_session
        return view(*args, **kwargs)

    return wrapper


def require_console_admin_api(view):
    """JSON variant of require_console_admin: 401 without session, 403 for non-admins."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        if not is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        console_session = load_console_session(get_directory())
        if console_session is None:
            return jsonify({"error": "Authentication required"}), 401
        if not console_session.is_admin:
            return jsonify({"error": "Administrator role required"}), 403
        g.console_session = console_session
        return view(*args, **kwargs)

    return wrapper


def refresh_session_token() -> Optional[bool]:
    """Refresh user's session token if needed.

    Returns:
        None if no token or not expired
        True if refresh successful
        False if refresh failed
    """
    cfg = current_app.config["APP_CONFIG"]
    from admin_console.api.auth import get_oidc_client

    token = session.get("token") or {}
    if not token:
        return None

    now = time.time()
    expires_at = token.get("expires_at")

    if expires_at is None:
        expires_in = token.get("expires_in")
        if expires_in is not None:
            try:
                expires_at = now + int(expires_in)
                token["expires_at"] = expires_at
                session["token"] = token
            except (TypeError, ValueError):
                pass

    if expires_at is None:
        return None

    token_refresh_leeway = int(current_app.config.get("OIDC_TOKEN_REFRESH_LEEWAY", 60))
    if expires_at - token_refresh_leeway > now:
        return None

    refresh_token = token.get("refresh_token")
    if not refresh_token:
        current_app.logger.warning("Session access token expired without refresh token; clearing session.")
        clear_session_tokens()
        return False

    try:
        token_endpoint = f"{cfg.keycloak_server_url}/protocol/openid-connect/token"
        # refresh_token grant posted directly; Authlib's Flask app does not expose it
        response = requests.post(
            token_endpoint,
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": cfg.oidc_client_id,
                "client_secret": cfg.oidc_client_secret,
            },
            timeout=10,
        )
        response.raise_for_status()
        new_token = response.json()
    except (requests.RequestException, ValueError) as exc:
        current_app.logger.warning("Token refresh failed: %s", exc)
        clear_session_tokens()
        return False

    if not new_token:
        clear_session_tokens()
        return False

    if "refresh_token" not in new_token:
        new_token["refresh_token"] = refresh_token

    expires_in = new_token.get("expires_in")
    if expires_in is not None:
        try:
            new_token["expires_at"] = time.time() + int(expires_in)
        except (TypeError, ValueError):
            new_token.pop("expires_at", None)

    session["token"] = new_token

    try:
        session["id_claims"] = get_oidc_client().parse_id_token(new_token)
    except Exception:
        # keep the previous claims; subject and email do not change on refresh
        pass

    return True


def clear_session_tokens() -> None:
    """Clear all session tokens."""
    session.pop("token", None)
    session.pop("userinfo", None)
    session.pop("id_claims", None)
