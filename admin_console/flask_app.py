"""Flask application factory for the admin console.

create_app() wires configuration, server-side sessions, the shared
DirectoryService, OIDC login, the blueprints and the request hooks (proxy
header checks, CSRF, OIDC token refresh).
"""
from __future__ import annotations
import ipaddress
import hmac
import logging
import os
import secrets
from tempfile import gettempdir

from flask import Flask, session, request, g, abort, redirect, url_for
from flask_session import Session
from werkzeug.middleware.proxy_fix import ProxyFix

from admin_console.config import load_settings
from admin_console.core.directory import DirectoryService
from admin_console.core.messages import Messages

logger = logging.getLogger(__name__)

CSRF_SESSION_KEY = "_csrf_token"
CSRF_HEADER = "X-CSRF-Token"
UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
FORWARDED_HEADERS = ("X-Forwarded-For", "X-Forwarded-Proto", "X-Forwarded-Host")

# Endpoints that must work while the OIDC token is missing or being replaced
NO_REFRESH_ENDPOINTS = frozenset({"login", "logout", "callback", "health_check", "readiness_check", "static"})


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app() -> Flask:
    """Create and configure the admin console application."""
    cfg = load_settings()
    _configure_logging(cfg.log_level)

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    app.config["SECRET_KEY"] = cfg.secret_key
    if cfg.secret_key_fallbacks:
        app.config["SECRET_KEY_FALLBACKS"] = cfg.secret_key_fallbacks
    app.config["OIDC_TOKEN_REFRESH_LEEWAY"] = int(os.environ.get("OIDC_TOKEN_REFRESH_LEEWAY", "60"))
    app.config["CSRF_SESSION_KEY"] = CSRF_SESSION_KEY

    _configure_session(app, cfg)

    # nginx sits in front; forwarded headers are only honoured from trusted proxies
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore
    trusted_networks = _parse_trusted_networks(cfg.trusted_proxy_ips)
    app.config["TRUSTED_PROXY_NETWORKS"] = trusted_networks

    # One service-account client per process, shared by page, API and guard
    app.extensions["directory"] = DirectoryService.from_config(cfg)

    from admin_console.api import auth
    auth.init_oauth(app, cfg)

    from admin_console.api import account, admin, directory_api, errors, health

    app.register_blueprint(auth.bp)
    app.register_blueprint(health.bp)
    app.register_blueprint(admin.bp, url_prefix="/admin")
    app.register_blueprint(directory_api.bp, url_prefix="/api")
    app.register_blueprint(account.bp, url_prefix="/api")

    errors.register_error_handlers(app)
    _register_middleware(app, trusted_networks)
    _register_context_processors(app, cfg)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    logger.info("[flask_app] Mode=%s; realm=%s; locale=%s", mode_label, cfg.keycloak_realm, cfg.console_locale)

    return app


def _configure_logging(level_name: str) -> None:
    """Configure root logging once; later calls only adjust the level."""
    level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    root.setLevel(level)


def _configure_session(app: Flask, cfg) -> None:
    """Server-side sessions (filesystem by default) with hardened cookies."""
    app.config["SESSION_TYPE"] = os.environ.get("FLASK_SESSION_TYPE", "filesystem")
    if app.config["SESSION_TYPE"] == "filesystem":
        session_dir = os.environ.get("FLASK_SESSION_DIR") or os.path.join(gettempdir(), "admin_console_flask_session")
        os.makedirs(session_dir, exist_ok=True)
        app.config["SESSION_FILE_DIR"] = session_dir

    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_COOKIE_SECURE=cfg.session_cookie_secure,
    )
    Session(app)


def _parse_trusted_networks(raw: str) -> list:
    """Parse TRUSTED_PROXY_IPS (comma-separated CIDRs); invalid entries are skipped."""
    networks = []
    for entry in (raw or "").split(","):
        entry = entry.strip()
        if not entry:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            logger.warning("[flask_app] Ignoring invalid TRUSTED_PROXY_IPS entry: %s", entry)
    return networks


# ─────────────────────────────────────────────────────────────────────────────
# Request Hooks
# ─────────────────────────────────────────────────────────────────────────────
def _register_middleware(app: Flask, trusted_networks: list):
    """Register before_request hooks."""

    @app.before_request
    def enforce_proxy_headers() -> None:
        """Reject forwarded headers that did not come from a trusted proxy."""
        _check_forwarded_headers(trusted_networks)
        g.csrf_token = _generate_csrf_token()

    @app.before_request
    def enforce_csrf() -> None:
        """Every state-changing request must echo the session's CSRF token."""
        if request.method not in UNSAFE_METHODS:
            return

        expected = session.get(app.config["CSRF_SESSION_KEY"], "")
        submitted = _submitted_csrf_token()
        if not expected or not submitted or not hmac.compare_digest(expected, submitted):
            abort(400, description="CSRF validation failed")

    @app.before_request
    def ensure_fresh_token():
        """Refresh the OIDC token shortly before it expires."""
        from admin_console.core.rbac import is_authenticated, refresh_session_token

        if not is_authenticated():
            return
        endpoint = (request.endpoint or "").rsplit(".", 1)[-1]
        if endpoint in NO_REFRESH_ENDPOINTS or request.path.startswith("/static/"):
            return

        if refresh_session_token() is False and not is_authenticated():
            # API callers get their 401 from the route itself
            if request.path.startswith("/api/"):
                return
            return redirect(url_for("auth.login"))


def _check_forwarded_headers(trusted_networks: list) -> None:
    if not any(request.headers.get(header) for header in FORWARDED_HEADERS):
        return

    # ProxyFix keeps the pre-rewrite environ values under this key
    original_remote = (request.environ.get("werkzeug.proxy_fix.orig") or {}).get("REMOTE_ADDR")
    if original_remote:
        try:
            address = ipaddress.ip_address(original_remote)
        except ValueError:
            abort(400, description="Invalid proxy address")
        if not any(address in network for network in trusted_networks):
            abort(400, description="Untrusted proxy")

    forwarded_proto = request.headers.get("X-Forwarded-Proto")
    if forwarded_proto and forwarded_proto != "https":
        abort(400, description="Invalid forwarded protocol")

    if "," in request.headers.get("X-Forwarded-For", ""):
        abort(400, description="Multiple forwarded clients not permitted")


def _submitted_csrf_token() -> str:
    """Form posts carry ``csrf_token``; JSON and body-less requests use the header."""
    token = "" if request.is_json else request.form.get("csrf_token", "")
    return token or request.headers.get(CSRF_HEADER, "")


def _register_context_processors(app: Flask, cfg):
    """Register context processors for templates."""

    @app.context_processor
    def inject_global_context():
        from admin_console.core.rbac import is_authenticated

        return {
            "csrf_token": g.get("csrf_token") or _generate_csrf_token(),
            "is_authenticated": is_authenticated(),
            "locale": cfg.console_locale,
            "messages": Messages(cfg.console_locale),
            "password_min_length": cfg.password_min_length,
        }


def _generate_csrf_token() -> str:
    """Return the session's CSRF token, creating it on first use."""
    token = session.get(CSRF_SESSION_KEY)
    if not token:
        token = secrets.token_urlsafe(32)
        session[CSRF_SESSION_KEY] = token
    return token


# ─────────────────────────────────────────────────────────────────────────────
# Application Instance (for Gunicorn)
# ─────────────────────────────────────────────────────────────────────────────
app = create_app()


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
