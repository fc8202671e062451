"""Gunicorn configuration for the admin console.

Secrets are read by admin_console.config.settings from /run/secrets (Docker
secrets) with environment variables as fallback; workers only report which
source is in use.
"""
import os
from pathlib import Path

wsgi_app = "admin_console.flask_app:app"
bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.environ.get("GUNICORN_WORKERS", "2"))
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "30"))
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()


def post_fork(server, worker):
    """Called just after a worker has been forked."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"
    if demo_mode:
        worker.log.warning("DEMO_MODE=true: demo credentials in use, do not expose this instance")

    secrets_dir = Path("/run/secrets")
    if secrets_dir.exists() and secrets_dir.is_dir():
        secret_files = list(secrets_dir.glob("*"))
        if secret_files:
            worker.log.info(f"Found {len(secret_files)} secrets in /run/secrets")
            return

    worker.log.info("No /run/secrets mount; secrets come from environment variables")
