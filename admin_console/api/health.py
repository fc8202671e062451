"""Health check endpoints."""
import logging

from flask import Blueprint

from admin_console.core.directory import DirectoryError
from admin_console.core.rbac import get_directory

logger = logging.getLogger(__name__)

bp = Blueprint("health", __name__)


@bp.route("/health")
def health_check():
    """Basic health check endpoint."""
    return ("ok", 200, {"Content-Type": "text/plain"})


@bp.route("/ready")
def readiness_check():
    """Ready once the service account can authenticate against Keycloak."""
    try:
        get_directory().check_ready()
    except DirectoryError as exc:
        logger.warning("[health] Not ready: %s", exc.detail)
        return ("not ready", 503, {"Content-Type": "text/plain"})
    return ("ready", 200, {"Content-Type": "text/plain"})
