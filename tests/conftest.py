"""Pytest shared fixtures for the admin console."""
import os
import pathlib
import sys
import json
import tempfile
from datetime import datetime, timezone
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")
os.environ.setdefault("FLASK_SESSION_COOKIE_SECURE", "false")
os.environ.setdefault("FLASK_SESSION_DIR", os.path.join(tempfile.gettempdir(), "admin_console_test_sessions"))

import pytest
import requests

from admin_console.core.directory import DirectoryError
from admin_console.core.models import DirectoryUser, Profile, Role
from admin_console.core.validators import validate_invite_email, validate_role
from scripts import audit

ADMIN_ID = "a0000000-0000-4000-8000-000000000001"
TECH_ID = "b0000000-0000-4000-8000-000000000002"
NOPROFILE_ID = "c0000000-0000-4000-8000-000000000003"
BOSS_ID = "d0000000-0000-4000-8000-000000000004"

SEED_CREATED = datetime(2024, 3, 5, 9, 30, tzinfo=timezone.utc)
SEED_SIGN_IN = datetime(2024, 11, 20, 18, 0, tzinfo=timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
class StubResponse:
    """Minimal requests.Response stand-in."""

    def __init__(self, payload=None, status_code: int = 200, headers: Optional[dict] = None, url: str = ""):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}
        self.url = url
        self.text = json.dumps(payload) if payload is not None else ""

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(response=self)


@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from hitting Keycloak.

    Tests that exercise the HTTP client patch requests themselves with mocker.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _stub_post(url, *args, **kwargs):
        if url.endswith("/protocol/openid-connect/token"):
            return StubResponse({"access_token": "test-token", "expires_in": 300}, url=url)
        raise RuntimeError(f"Unexpected HTTP POST in unit test: {url}")

    def _stub_get(url, *args, **kwargs):
        if url.endswith("/.well-known/openid-configuration"):
            return StubResponse({"jwks_uri": "http://localhost:8080/realms/demo/protocol/openid-connect/certs"}, url=url)
        raise RuntimeError(f"Unexpected HTTP GET in unit test: {url}")

    def _stub_other(url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP call in unit test: {url}")

    monkeypatch.setattr(requests, "post", _stub_post)
    monkeypatch.setattr(requests, "get", _stub_get)
    monkeypatch.setattr(requests, "put", _stub_other)
    monkeypatch.setattr(requests, "delete", _stub_other)


@pytest.fixture(autouse=True)
def temp_audit_dir(monkeypatch, tmp_path):
    """Keep audit events of each test in its own directory."""
    audit_dir = tmp_path / "audit"
    audit_file = audit_dir / "directory-events.jsonl"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_file)
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")
    return audit_dir, audit_file


# ─────────────────────────────────────────────────────────────────────────────
# In-memory directory
# ─────────────────────────────────────────────────────────────────────────────
class FakeDirectory:
    """In-memory stand-in for DirectoryService with the same error contract.

    ``fail_next[operation] = DirectoryError(...)`` makes the next call of that
    operation fail once.
    """

    def __init__(self):
        self.records = {}
        self.calls = []
        self.fail_next = {}
        self.passwords = {}
        self._next_id = 1

    def add_user(self, user_id: str, email: str, role: Optional[Role] = None,
                 last_sign_in_at: Optional[datetime] = None):
        self.records[user_id] = {
            "email": email,
            "role": role,
            "created_at": SEED_CREATED,
            "updated_at": SEED_CREATED,
            "last_sign_in_at": last_sign_in_at,
        }

    def _check(self, operation: str, *args):
        self.calls.append((operation, *args))
        exc = self.fail_next.pop(operation, None)
        if exc is not None:
            raise exc

    def _user(self, user_id: str) -> DirectoryUser:
        record = self.records[user_id]
        profile = None
        if record["role"] is not None:
            profile = Profile(user_id, record["email"], record["role"], record["created_at"], record["updated_at"])
        return DirectoryUser(user_id, record["email"], record["created_at"], record["last_sign_in_at"], profile)

    def role_of(self, user_id: str) -> Optional[Role]:
        return self.records[user_id]["role"]

    def list_users(self):
        self._check("list_users")
        return sorted((self._user(uid) for uid in self.records), key=lambda user: user.email)

    def get_profile(self, user_id: str):
        self._check("get_profile", user_id)
        if user_id not in self.records:
            raise DirectoryError(404, "User not found")
        return self._user(user_id).profile

    def invite_user(self, email, role=Role.NORMAL, operator: str = "system") -> str:
        self._check("invite_user", email, role)
        try:
            email = validate_invite_email(email)
            parsed = validate_role(role, default=Role.NORMAL)
        except ValueError as exc:
            raise DirectoryError(400, str(exc))
        if any(record["email"] == email for record in self.records.values()):
            raise DirectoryError(409, "User exists with same username")
        user_id = f"e{self._next_id:07d}-0000-4000-8000-000000000000"
        self._next_id += 1
        self.add_user(user_id, email, parsed)
        return user_id

    def update_role(self, user_id: str, role, operator: str = "system"):
        self._check("update_role", user_id, role)
        try:
            parsed = validate_role(role)
        except ValueError as exc:
            raise DirectoryError(400, str(exc))
        if user_id not in self.records:
            raise DirectoryError(404, "User not found")
        self.records[user_id]["role"] = parsed

    def delete_user(self, user_id: str, operator: str = "system", acting_user_id: Optional[str] = None):
        self._check("delete_user", user_id)
        if acting_user_id and acting_user_id == user_id:
            raise DirectoryError(400, "You cannot delete your own account")
        if user_id not in self.records:
            raise DirectoryError(404, "User not found")
        del self.records[user_id]

    def record_sign_in(self, user_id: str):
        self._check("record_sign_in", user_id)
        if user_id not in self.records:
            raise DirectoryError(404, "User not found")
        self.records[user_id]["last_sign_in_at"] = datetime.now(timezone.utc)

    def set_password(self, user_id: str, password: str):
        self._check("set_password", user_id)
        self.passwords[user_id] = password

    def check_ready(self):
        self._check("check_ready")

    def operations(self):
        return [call[0] for call in self.calls]


@pytest.fixture()
def directory():
    """FakeDirectory seeded with an admin, a technician and a user without profile."""
    fake = FakeDirectory()
    fake.add_user(ADMIN_ID, "admin@example.com", Role.ADMIN, last_sign_in_at=SEED_SIGN_IN)
    fake.add_user(TECH_ID, "tech@example.com", Role.TECHNICIAN)
    fake.add_user(NOPROFILE_ID, "orphan@example.com", None)
    return fake


# ─────────────────────────────────────────────────────────────────────────────
# Flask Test Client
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def app(directory):
    """Flask app wired to the in-memory directory."""
    from admin_console.flask_app import create_app

    flask_app = create_app()
    flask_app.config.update(TESTING=True)
    flask_app.extensions["directory"] = directory
    return flask_app


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        with app.app_context():
            yield client


# ─────────────────────────────────────────────────────────────────────────────
# Authentication Helpers
# ─────────────────────────────────────────────────────────────────────────────
def authenticate(client, user_id: str = ADMIN_ID, email: str = "admin@example.com"):
    """Put an OIDC login for ``user_id`` into the test client's session."""
    with client.session_transaction() as session:
        session["token"] = {"access_token": "stub", "id_token": "stub"}
        session["userinfo"] = {"sub": user_id, "email": email, "preferred_username": email}
        session["id_claims"] = {"sub": user_id, "email": email}


def get_csrf_token(client) -> str:
    """Get CSRF token from session."""
    client.get("/health")
    with client.session_transaction() as session:
        return session.get("_csrf_token", "")


def row_html(html: str, user_id: str) -> str:
    """Return the <tr> markup of one user row of the admin table."""
    start = html.index(f'<tr data-user-id="{user_id}">')
    return html[start:html.index("</tr>", start)]


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires running Keycloak)"
    )
