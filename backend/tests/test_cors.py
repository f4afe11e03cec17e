import pytest
from fastapi.testclient import TestClient

from apiserver.api.main import create_app
from apiserver.api.middleware import OriginPolicy
from apiserver.utils.exceptions import CORSRejectedError

from conftest import CLIENT_URL


@pytest.mark.parametrize(
    "origin, allowed",
    [
        (None, True),
        ("", True),
        (CLIENT_URL, True),
        ("https://evil.com", False),
        (CLIENT_URL + "/", False),
        ("http://app.example.com", False),
    ],
)
def test_origin_policy(origin, allowed) -> None:
    assert OriginPolicy([CLIENT_URL]).is_allowed(origin) is allowed


def test_policy_without_configured_origin_only_allows_missing_origin() -> None:
    policy = OriginPolicy([])
    assert policy.is_allowed(None) is True
    assert policy.is_allowed(CLIENT_URL) is False


def test_request_without_origin_is_permitted(client: TestClient) -> None:
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert "access-control-allow-origin" not in response.headers


def test_allowed_origin_gets_credentials(client: TestClient) -> None:
    response = client.get("/api/v1/health", headers={"Origin": CLIENT_URL})

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == CLIENT_URL
    assert response.headers["access-control-allow-credentials"] == "true"


def test_other_origin_is_rejected(client: TestClient) -> None:
    response = client.get("/api/v1/health", headers={"Origin": "https://evil.com"})

    assert response.status_code == CORSRejectedError.status_code == 403
    body = response.json()
    assert body["error"] == CORSRejectedError.__name__
    assert body["message"] == "Not allowed by CORS"
    assert body["details"] == {"origin": "https://evil.com"}
    assert "access-control-allow-origin" not in response.headers


def test_preflight_from_allowed_origin(client: TestClient) -> None:
    response = client.options(
        "/api/v1/health",
        headers={
            "Origin": CLIENT_URL,
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "content-type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == CLIENT_URL
    assert response.headers["access-control-allow-credentials"] == "true"


def test_preflight_from_other_origin_is_rejected(client: TestClient) -> None:
    response = client.options(
        "/api/v1/health",
        headers={
            "Origin": "https://evil.com",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.status_code == 403


def test_without_client_url_every_origin_is_rejected(make_settings) -> None:
    client = TestClient(create_app(make_settings(client_url=None)))

    assert client.get("/api/v1/health").status_code == 200
    assert client.get("/api/v1/health", headers={"Origin": CLIENT_URL}).status_code == 403
