"""Unit tests for the Keycloak Admin API HTTP client."""
from datetime import datetime, timedelta

import pytest

from admin_console.core.keycloak import KeycloakClient, KeycloakAPIError, REQUEST_TIMEOUT, extract_error_message
from admin_console.core.keycloak.client import user_id_from_location
from tests.conftest import StubResponse

BASE = "http://keycloak:8080"


@pytest.fixture()
def kc_client():
    client = KeycloakClient(BASE + "/")
    client.configure_service_account("demo", "automation-cli", "secret")
    return client


def test_token_is_fetched_lazily_on_first_request(kc_client, mocker):
    token_post = mocker.patch(
        "requests.post",
        return_value=StubResponse({"access_token": "svc-token", "expires_in": 300}),
    )
    get = mocker.patch("requests.get", return_value=StubResponse([]))

    assert token_post.call_count == 0
    kc_client.get("/admin/realms/demo/users")

    token_post.assert_called_once()
    token_url = token_post.call_args.args[0]
    assert token_url == f"{BASE}/realms/demo/protocol/openid-connect/token"
    assert token_post.call_args.kwargs["data"]["grant_type"] == "client_credentials"

    assert get.call_args.args[0] == f"{BASE}/admin/realms/demo/users"
    assert get.call_args.kwargs["headers"]["Authorization"] == "Bearer svc-token"
    assert get.call_args.kwargs["timeout"] == REQUEST_TIMEOUT


def test_token_is_reused_until_close_to_expiry(kc_client, mocker):
    token_post = mocker.patch(
        "requests.post",
        return_value=StubResponse({"access_token": "svc-token", "expires_in": 300}),
    )
    mocker.patch("requests.get", return_value=StubResponse([]))

    kc_client.get("/a")
    kc_client.get("/b")
    assert token_post.call_count == 1

    kc_client._token_expires_at = datetime.now() + timedelta(seconds=5)
    kc_client.get("/c")
    assert token_post.call_count == 2


def test_unconfigured_client_refuses_requests():
    client = KeycloakClient(BASE)
    with pytest.raises(KeycloakAPIError) as exc_info:
        client.get("/admin/realms/demo/users")
    assert exc_info.value.status_code == 401


def test_token_failure_raises_with_keycloak_message(kc_client, mocker):
    mocker.patch(
        "requests.post",
        return_value=StubResponse({"error": "unauthorized_client", "error_description": "Invalid client secret"}, 401),
    )
    with pytest.raises(KeycloakAPIError) as exc_info:
        kc_client.ensure_token()
    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Invalid client secret"


def test_http_error_carries_status_and_error_message(kc_client, mocker):
    mocker.patch("requests.post", return_value=StubResponse({"access_token": "t", "expires_in": 300}))
    mocker.patch(
        "requests.put",
        return_value=StubResponse({"errorMessage": "User exists with same email"}, 409, url=f"{BASE}/x"),
    )

    with pytest.raises(KeycloakAPIError) as exc_info:
        kc_client.put("/x", json={})

    assert exc_info.value.status_code == 409
    assert exc_info.value.message == "User exists with same email"
    assert exc_info.value.endpoint == f"{BASE}/x"


def test_delete_passes_json_body(kc_client, mocker):
    mocker.patch("requests.post", return_value=StubResponse({"access_token": "t", "expires_in": 300}))
    delete = mocker.patch("requests.delete", return_value=StubResponse(None, 204))

    kc_client.delete("/mapping", json=[{"id": "r1", "name": "admin"}])

    assert delete.call_args.kwargs["json"] == [{"id": "r1", "name": "admin"}]


@pytest.mark.parametrize(
    "payload,text,expected",
    [
        ({"errorMessage": "Password policy not met"}, None, "Password policy not met"),
        ({"error": "invalid_grant"}, None, "invalid_grant"),
        (None, "plain failure", "plain failure"),
        (None, "", "HTTP 500"),
    ],
)
def test_extract_error_message(payload, text, expected):
    resp = StubResponse(payload, 500)
    if text is not None:
        resp.text = text
    assert extract_error_message(resp) == expected


def test_user_id_from_location():
    resp = StubResponse(None, 201, headers={"Location": f"{BASE}/admin/realms/demo/users/abc-123"})
    assert user_id_from_location(resp) == "abc-123"
    assert user_id_from_location(StubResponse(None, 201)) is None
