"""Authentication routes and OIDC helpers (Keycloak, authorization code + PKCE)."""
from __future__ import annotations
import hashlib
import base64
import logging
import secrets
import string
from urllib.parse import urlencode

from flask import Blueprint, session, redirect, url_for, current_app, render_template
from authlib.integrations.flask_client import OAuth

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

# Module-level OAuth instance (initialized by create_app)
oauth: OAuth = None
_client = None


def init_oauth(app, cfg):
    """Register the Keycloak OIDC client."""
    global oauth, _client

    oauth = OAuth(app)
    _client = oauth.register(
        name="keycloak",
        server_metadata_url=f"{cfg.keycloak_server_url}/.well-known/openid-configuration",
        client_id=cfg.oidc_client_id,
        client_secret=cfg.oidc_client_secret or None,
        client_kwargs={"scope": "openid profile email"},
        fetch_token=lambda: session.get("token"),
    )
    return oauth


def get_oidc_client():
    """Get the registered OIDC client."""
    if _client is None:
        raise RuntimeError("OIDC client not initialized. Call init_oauth first.")
    return _client


# ─────────────────────────────────────────────────────────────────────────────
# PKCE Helpers
# ─────────────────────────────────────────────────────────────────────────────
def _generate_code_verifier(length: int = 64) -> str:
    """Generate PKCE code verifier."""
    alphabet = string.ascii_letters + string.digits + "-._~"
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _build_code_challenge(code_verifier: str) -> str:
    """Build PKCE code challenge from verifier."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────
@bp.route("/login")
def login():
    """Initiate OIDC login flow with PKCE."""
    cfg = current_app.config["APP_CONFIG"]
    client = get_oidc_client()

    code_verifier = _generate_code_verifier()
    session["pkce_code_verifier"] = code_verifier

    return client.authorize_redirect(
        redirect_uri=cfg.oidc_redirect_uri,
        code_challenge=_build_code_challenge(code_verifier),
        code_challenge_method="S256",
    )


@bp.route("/callback")
def callback():
    """Handle OIDC callback after successful authentication."""
    cfg = current_app.config["APP_CONFIG"]
    client = get_oidc_client()

    code_verifier = session.pop("pkce_code_verifier", None)
    if not code_verifier:
        return redirect(url_for("auth.login"))

    token = client.authorize_access_token(code_verifier=code_verifier)
    session["token"] = token

    try:
        session["id_claims"] = client.parse_id_token(token)
    except Exception as exc:
        logger.warning("[auth] Could not parse ID token: %s", exc)
        session["id_claims"] = {}

    try:
        userinfo_url = f"{cfg.keycloak_server_url}/protocol/openid-connect/userinfo"
        session["userinfo"] = client.get(userinfo_url, token=token).json()
    except Exception as exc:
        logger.warning("[auth] Userinfo request failed: %s", exc)
        session["userinfo"] = {}

    _record_sign_in()

    # The admin page guard sends non-admins back to "/"
    return redirect(url_for("admin.admin_dashboard"))


def _record_sign_in() -> None:
    """Stamp the sign-in on the user; the login itself never fails over it."""
    from admin_console.core.directory import DirectoryError
    from admin_console.core.rbac import current_identity, get_directory

    user_id, _ = current_identity()
    if not user_id:
        logger.warning("[auth] No subject claim; sign-in time not recorded")
        return
    try:
        get_directory().record_sign_in(user_id)
    except DirectoryError as exc:
        logger.warning("[auth] Could not record sign-in for %s: %s", user_id, exc.detail)


@bp.route("/logout", methods=["GET", "POST"])
def logout():
    """Clear the session and end the Keycloak SSO session."""
    cfg = current_app.config["APP_CONFIG"]

    token = session.get("token") or {}
    id_token = token.get("id_token")
    session.clear()

    end_session_endpoint = f"{cfg.keycloak_public_issuer.rstrip('/')}/protocol/openid-connect/logout"
    params = {"post_logout_redirect_uri": cfg.post_logout_redirect_uri}
    if id_token:
        params["id_token_hint"] = id_token
    else:
        params["client_id"] = cfg.oidc_client_id

    return redirect(f"{end_session_endpoint}?{urlencode(params)}")


@bp.route("/")
def index():
    """Home page."""
    from admin_console.core.rbac import get_directory, is_authenticated, load_console_session

    cfg = current_app.config["APP_CONFIG"]
    console_session = load_console_session(get_directory()) if is_authenticated() else None

    return render_template(
        "index.html",
        title="Welcome",
        console_session=console_session,
        demo_mode=cfg.demo_mode,
    )
