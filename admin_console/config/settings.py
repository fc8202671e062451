"""Admin console settings: environment variables plus Docker secrets.

Secrets are read from ``/run/secrets/<name>`` first and fall back to the
matching environment variable. Outside demo mode every required value must
be present; a missing one stops the process at startup with RuntimeError.
"""
from __future__ import annotations
import logging
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from admin_console.core.validators import PASSWORD_MIN_LENGTH

logger = logging.getLogger(__name__)

SUPPORTED_LOCALES = ("en", "es")
DEFAULT_TRUSTED_PROXIES = "127.0.0.1/32,::1/128"
DEMO_SERVICE_SECRET = "demo-service-secret"


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """Return ``/run/secrets/<secret_name>`` if readable, else ``$env_var``, else None."""
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            value = secret_file.read_text().strip()
        except OSError as exc:
            logger.warning("[settings] Failed to read /run/secrets/%s: %s", secret_name, exc)
        else:
            if value:
                logger.info("[settings] Loaded %s from /run/secrets", secret_name)
                return value

    if env_var:
        return os.getenv(env_var) or None
    return None


@dataclass
class AppConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool

    # Flask
    secret_key: str
    secret_key_fallbacks: list[str] = field(default_factory=list)
    session_cookie_secure: bool = True
    trusted_proxy_ips: str = DEFAULT_TRUSTED_PROXIES
    log_level: str = "INFO"

    # Keycloak / OIDC
    keycloak_url: str = ""
    keycloak_realm: str = "demo"
    keycloak_service_realm: str = "demo"
    keycloak_issuer: str = ""
    keycloak_server_url: str = ""
    keycloak_public_issuer: str = ""

    # OIDC client (interactive login)
    oidc_client_id: str = "admin-console"
    oidc_client_secret: str = ""
    oidc_redirect_uri: str = ""
    post_logout_redirect_uri: str = ""

    # Service account (Admin API)
    keycloak_service_client_id: str = "automation-cli"
    keycloak_service_client_secret: str = ""

    # Invitations
    invite_redirect_uri: str = ""
    invite_lifespan_seconds: int = 0

    # Console
    console_locale: str = "en"
    console_date_format: str = "%d/%m/%Y"
    password_min_length: int = PASSWORD_MIN_LENGTH

    # Audit
    audit_log_signing_key: str = ""

    @property
    def keycloak_base_url(self) -> str:
        """Keycloak root URL for Admin API calls.

        Prefers KEYCLOAK_URL, otherwise strips ``/realms/<realm>`` from the
        server URL (http://keycloak:8080/realms/demo -> http://keycloak:8080).
        """
        if self.keycloak_url:
            return self.keycloak_url.rstrip("/")
        return self.keycloak_server_url.split("/realms/")[0].rstrip("/")


def _get_or_generate(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        logger.info("[demo-mode] Using default for %s", var_name)
        os.environ[var_name] = demo_default
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def _int_env(var_name: str, default: int) -> int:
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {var_name} must be an integer (got {raw!r}).")


def _flag(var_name: str, default: bool) -> bool:
    return os.environ.get(var_name, "true" if default else "false").strip().lower() == "true"


def _required_secret(secret_name: str, env_var: str, demo_mode: bool, demo_value) -> str:
    """Secret that must exist in production; ``demo_value()`` supplies it in demo mode."""
    value = _load_secret_from_file(secret_name, env_var)
    if value:
        return value
    if not demo_mode:
        raise RuntimeError(f"{env_var} not found in /run/secrets or environment")
    logger.info("[demo-mode] Using generated/default %s", env_var)
    return demo_value()


def _console_locale() -> str:
    locale = os.environ.get("CONSOLE_LOCALE", "en").strip().lower()
    if locale not in SUPPORTED_LOCALES:
        logger.warning("[settings] Unsupported CONSOLE_LOCALE=%s, falling back to 'en'", locale)
        return "en"
    return locale


def _password_min_length() -> int:
    """PASSWORD_MIN_LENGTH may raise the minimum, never lower it."""
    configured = _int_env("PASSWORD_MIN_LENGTH", PASSWORD_MIN_LENGTH)
    if configured < PASSWORD_MIN_LENGTH:
        logger.warning("[settings] PASSWORD_MIN_LENGTH=%s below %s; using %s",
                       configured, PASSWORD_MIN_LENGTH, PASSWORD_MIN_LENGTH)
        return PASSWORD_MIN_LENGTH
    return configured


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = _flag("DEMO_MODE", False)

    def _generated_flask_key() -> str:
        key = secrets.token_urlsafe(48)
        # exported so every worker of this process signs sessions alike
        os.environ["FLASK_SECRET_KEY"] = key
        return key

    secret_key = _required_secret("flask_secret_key", "FLASK_SECRET_KEY", demo_mode, _generated_flask_key)
    secret_key_fallbacks = [
        key.strip()
        for key in os.environ.get("FLASK_SECRET_KEY_FALLBACKS", "").split(",")
        if key.strip()
    ]

    trusted_proxy_ips = os.environ.get("TRUSTED_PROXY_IPS")
    if not trusted_proxy_ips:
        if not (demo_mode or os.environ.get("PYTEST_CURRENT_TEST")):
            raise RuntimeError("TRUSTED_PROXY_IPS is required when DEMO_MODE is false.")
        trusted_proxy_ips = DEFAULT_TRUSTED_PROXIES

    # Keycloak
    keycloak_realm = os.environ.get("KEYCLOAK_REALM", "demo")
    keycloak_issuer = _get_or_generate(
        "KEYCLOAK_ISSUER",
        demo_default="http://localhost:8080/realms/demo",
        demo_mode=demo_mode,
    )
    keycloak_server_url = os.environ.get("KEYCLOAK_SERVER_URL", keycloak_issuer)

    # Interactive login
    oidc_client_id = _get_or_generate("OIDC_CLIENT_ID", demo_default="admin-console", demo_mode=demo_mode)
    post_logout_redirect_uri = _get_or_generate(
        "POST_LOGOUT_REDIRECT_URI",
        demo_default="http://localhost:5000/",
        demo_mode=demo_mode,
    )

    cfg = AppConfig(
        demo_mode=demo_mode,
        secret_key=secret_key,
        secret_key_fallbacks=secret_key_fallbacks,
        session_cookie_secure=_flag("FLASK_SESSION_COOKIE_SECURE", True),
        trusted_proxy_ips=trusted_proxy_ips,
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        keycloak_url=os.environ.get("KEYCLOAK_URL", "http://127.0.0.1:8080" if demo_mode else ""),
        keycloak_realm=keycloak_realm,
        keycloak_service_realm=os.environ.get("KEYCLOAK_SERVICE_REALM", keycloak_realm),
        keycloak_issuer=keycloak_issuer,
        keycloak_server_url=keycloak_server_url,
        keycloak_public_issuer=os.environ.get("KEYCLOAK_PUBLIC_ISSUER", keycloak_issuer),
        oidc_client_id=oidc_client_id,
        oidc_client_secret=_load_secret_from_file("oidc_client_secret", "OIDC_CLIENT_SECRET") or "",
        oidc_redirect_uri=_get_or_generate(
            "OIDC_REDIRECT_URI",
            demo_default="http://localhost:5000/callback",
            demo_mode=demo_mode,
        ),
        post_logout_redirect_uri=post_logout_redirect_uri,
        keycloak_service_client_id=_get_or_generate(
            "KEYCLOAK_SERVICE_CLIENT_ID",
            demo_default="automation-cli",
            demo_mode=demo_mode,
        ),
        keycloak_service_client_secret=_required_secret(
            "keycloak_service_client_secret",
            "KEYCLOAK_SERVICE_CLIENT_SECRET",
            demo_mode,
            lambda: DEMO_SERVICE_SECRET,
        ),
        invite_redirect_uri=os.environ.get("INVITE_REDIRECT_URI", post_logout_redirect_uri),
        invite_lifespan_seconds=_int_env("INVITE_LIFESPAN_SECONDS", 0),
        console_locale=_console_locale(),
        console_date_format=os.environ.get("CONSOLE_DATE_FORMAT", "%d/%m/%Y"),
        password_min_length=_password_min_length(),
        audit_log_signing_key=_load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY") or "",
    )

    if cfg.audit_log_signing_key:
        # scripts.audit reads the key from the environment
        os.environ["AUDIT_LOG_SIGNING_KEY"] = cfg.audit_log_signing_key

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    logger.info("[settings] Mode=%s; realm=%s; client_id=%s", mode_label, keycloak_realm, oidc_client_id)
    if demo_mode:
        logger.warning("[settings] Demo credentials in use. Do not deploy with these defaults.")

    return cfg
