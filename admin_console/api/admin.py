"""Admin console routes (server-rendered user directory)."""
from __future__ import annotations

from flask import Blueprint, render_template, request, redirect, url_for, flash, current_app, g, get_flashed_messages

from admin_console.core.console import DirectoryConsole, Notice
from admin_console.core.messages import Messages
from admin_console.core.models import Role
from admin_console.core.rbac import get_directory, require_console_admin

bp = Blueprint("admin", __name__)


def _build_console() -> DirectoryConsole:
    """Page state for this request, with the guard's session passed in."""
    cfg = current_app.config["APP_CONFIG"]
    return DirectoryConsole(
        session=g.console_session,
        directory=get_directory(),
        messages=Messages(cfg.console_locale),
        date_format=cfg.console_date_format,
        # Post/Redirect/Get re-reads the list after a successful mutation
        reload_after_mutation=False,
    )


def _render(console: DirectoryConsole, status: int = 200):
    return render_template(
        "admin.html",
        title=console.messages.get("title"),
        console=console,
        rows=console.rows(),
        roles=list(Role),
        messages=console.messages,
    ), status


def _render_failure(console: DirectoryConsole):
    """Re-render the page with the failing dialog still open."""
    console.load_users()
    return _render(console, console.error_status or 400)


@bp.route("/")
@require_console_admin
def admin_dashboard():
    """User directory with invite, edit and delete dialogs."""
    console = _build_console()
    console.load_users()

    flashed = get_flashed_messages(with_categories=True)
    if flashed:
        kind, text = flashed[-1]
        console.notice = Notice("success" if kind == "success" else "error", text)

    if request.args.get("invite") == "1":
        console.open_invite()
    edit_id = request.args.get("edit")
    if edit_id:
        console.open_edit(edit_id)
    delete_id = request.args.get("delete")
    if delete_id:
        console.open_delete(delete_id)

    return _render(console)


@bp.post("/invite")
@require_console_admin
def admin_invite():
    """Invite a user by email."""
    console = _build_console()
    email = request.form.get("email", "")
    role = request.form.get("role") or Role.NORMAL.value

    if console.submit_invite(email, role):
        flash(console.notice.text, "success")
        return redirect(url_for("admin.admin_dashboard"))

    if console.notice is None:
        # empty email: nothing sent, dialog stays open
        console.load_users()
        return _render(console)
    return _render_failure(console)


@bp.post("/users/<user_id>/role")
@require_console_admin
def admin_update_role(user_id: str):
    """Change a user's console role."""
    console = _build_console()
    console.load_users()
    role = request.form.get("role", "")

    if console.submit_edit(user_id, role):
        flash(console.notice.text, "success")
        return redirect(url_for("admin.admin_dashboard"))
    return _render_failure(console)


@bp.post("/users/<user_id>/delete")
@require_console_admin
def admin_delete_user(user_id: str):
    """Delete a user (never the signed-in admin)."""
    console = _build_console()
    console.load_users()

    if console.submit_delete(user_id):
        flash(console.notice.text, "success")
        return redirect(url_for("admin.admin_dashboard"))
    return _render_failure(console)
