"""JSON API for the user directory.

Every mutation is authorized server-side (admin profile required); the
admin page guard is only a convenience on top of this.

Endpoints:
    GET    /api/auth/session        caller's user and profile, or {}
    GET    /api/admin/users         all users with their profiles
    POST   /api/admin/invite        {email, role}
    PATCH  /api/admin/users/<id>    {role}
    DELETE /api/admin/users/<id>
"""
from __future__ import annotations
import logging

from flask import Blueprint, jsonify, request, g

from admin_console.core.directory import DirectoryError
from admin_console.core.models import Role
from admin_console.core.rbac import get_directory, load_console_session, require_console_admin_api

logger = logging.getLogger(__name__)

bp = Blueprint("directory_api", __name__)


def _error(exc: DirectoryError):
    return jsonify(exc.to_dict()), exc.status


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


@bp.get("/auth/session")
def current_session():
    """Return {user, profile} for the signed-in caller, {} otherwise."""
    console_session = load_console_session(get_directory())
    if console_session is None:
        return jsonify({})
    return jsonify(console_session.to_dict())


@bp.get("/admin/users")
@require_console_admin_api
def list_users():
    try:
        users = get_directory().list_users()
    except DirectoryError as exc:
        return _error(exc)
    return jsonify({"users": [user.to_dict() for user in users]})


@bp.post("/admin/invite")
@require_console_admin_api
def invite_user():
    payload = _json_body()
    try:
        get_directory().invite_user(
            payload.get("email"),
            payload.get("role") or Role.NORMAL.value,
            operator=g.console_session.email,
        )
    except DirectoryError as exc:
        return _error(exc)
    return jsonify({})


@bp.patch("/admin/users/<user_id>")
@require_console_admin_api
def update_user(user_id: str):
    payload = _json_body()
    try:
        get_directory().update_role(user_id, payload.get("role"), operator=g.console_session.email)
    except DirectoryError as exc:
        return _error(exc)
    return jsonify({})


@bp.delete("/admin/users/<user_id>")
@require_console_admin_api
def delete_user(user_id: str):
    try:
        get_directory().delete_user(
            user_id,
            operator=g.console_session.email,
            acting_user_id=g.console_session.user_id,
        )
    except DirectoryError as exc:
        return _error(exc)
    return jsonify({})
