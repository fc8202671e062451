"""Password update endpoint for the signed-in user."""
import pytest
import requests

from admin_console.core.keycloak import KeycloakAPIError, KeycloakError
from tests.conftest import TECH_ID, authenticate, get_csrf_token

URL = "/api/auth/update-password"


def _post(client, body):
    return client.post(URL, json=body, headers={"X-CSRF-Token": get_csrf_token(client)})


def test_requires_sign_in(client, directory):
    response = _post(client, {"password": "longenough"})
    assert response.status_code == 401
    assert response.get_json() == {"error": "Authentication required"}
    assert directory.calls == []


@pytest.mark.parametrize("body", [{}, {"password": ""}, {"password": "12345"}, None])
def test_short_password_is_rejected_before_keycloak(client, directory, body):
    authenticate(client, TECH_ID, "tech@example.com")
    response = _post(client, body)

    assert response.status_code == 400
    assert "6 characters" in response.get_json()["error"]
    assert "set_password" not in directory.operations()


def test_password_updated(client, directory):
    authenticate(client, TECH_ID, "tech@example.com")
    response = _post(client, {"password": "123456"})

    assert response.status_code == 200
    assert response.get_json() == {"success": True, "message": "Password updated successfully"}
    assert directory.passwords[TECH_ID] == "123456"


def test_keycloak_rejection_is_returned_verbatim(client, directory):
    authenticate(client, TECH_ID, "tech@example.com")
    directory.fail_next["set_password"] = KeycloakAPIError(400, "Password must not be equal to the username", "/reset-password")

    response = _post(client, {"password": "tech@example.com"})

    assert response.status_code == 400
    assert response.get_json() == {"error": "Password must not be equal to the username"}


@pytest.mark.parametrize("exc", [
    KeycloakError("token refresh failed"),
    requests.ConnectionError("connection refused"),
    RuntimeError("boom"),
])
def test_other_failures_are_server_errors(client, directory, exc):
    authenticate(client, TECH_ID, "tech@example.com")
    directory.fail_next["set_password"] = exc

    response = _post(client, {"password": "123456"})

    assert response.status_code == 500
    assert response.get_json()["error"]


def test_configured_minimum_cannot_go_below_six(monkeypatch, directory):
    from admin_console.flask_app import create_app

    monkeypatch.setenv("PASSWORD_MIN_LENGTH", "3")
    app = create_app()
    app.config.update(TESTING=True)
    app.extensions["directory"] = directory

    with app.test_client() as client:
        authenticate(client, TECH_ID, "tech@example.com")
        response = _post(client, {"password": "abc"})

    assert response.status_code == 400
    assert "set_password" not in directory.operations()
