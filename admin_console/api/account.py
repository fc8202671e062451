"""Account self-service: password update for the signed-in user."""
from __future__ import annotations
import logging

import requests
from flask import Blueprint, jsonify, request, current_app

from admin_console.core.credentials import change_password
from admin_console.core.keycloak import KeycloakAPIError, KeycloakError
from admin_console.core.messages import Messages
from admin_console.core.rbac import current_identity, get_directory, is_authenticated

logger = logging.getLogger(__name__)

bp = Blueprint("account", __name__)


@bp.post("/auth/update-password")
def update_password():
    """Set a new password for the caller.

    The 401 is deliberate and comes before any validation: the password
    belongs to the session's user, so an anonymous call has nobody to update.

    Responses:
        400 {"error"}: password shorter than the minimum, or rejected by Keycloak
        401 {"error"}: not signed in
        500 {"error"}: anything else
        200 {"success": true, "message"}
    """
    cfg = current_app.config["APP_CONFIG"]
    messages = Messages(cfg.console_locale)

    user_id, _ = current_identity()
    if not is_authenticated() or not user_id:
        return jsonify({"error": messages.get("auth_required")}), 401

    payload = request.get_json(silent=True)
    password = payload.get("password") if isinstance(payload, dict) else None

    try:
        change_password(get_directory(), user_id, password, min_length=cfg.password_min_length)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except KeycloakAPIError as exc:
        logger.warning("[account] Keycloak rejected password change for %s: %s", user_id, exc.message)
        return jsonify({"error": exc.message}), 400
    except (KeycloakError, requests.RequestException) as exc:
        logger.error("[account] Password change for %s failed: %s", user_id, exc)
        return jsonify({"error": str(exc) or messages.get("password_error")}), 500
    except Exception as exc:
        logger.exception("[account] Unexpected error changing password for %s", user_id)
        return jsonify({"error": str(exc) or messages.get("password_error")}), 500

    return jsonify({"success": True, "message": messages.get("password_updated")})
