import pytest
from fastapi import Depends, FastAPI
from starlette.testclient import TestClient

from auth import APIKeyMiddleware, get_current_user_id
from main import install_error_handlers


@pytest.fixture
def app_with_middleware(monkeypatch):
    monkeypatch.setattr(APIKeyMiddleware, "API_KEY", "valid-key")

    app = FastAPI()
    app.add_middleware(APIKeyMiddleware)
    install_error_handlers(app)

    @app.get("/")
    async def root():
        return {"message": "API Running"}

    @app.get("/whoami")
    async def whoami(user_id: str = Depends(get_current_user_id)):
        return {"userId": user_id}

    return app


@pytest.fixture
def client(app_with_middleware):
    return TestClient(app_with_middleware)


@pytest.mark.parametrize("header_name", ["X-API-Key", "x-api-key", "X-Api-Key"])
def test_api_key_middleware_accepts_case_insensitive_header(client, header_name):
    """Given a valid API key, when the API key header is provided with different casings, it should be accepted."""
    response = client.get("/whoami", headers={header_name: "valid-key", "X-User-Id": "user-1"})
    assert response.status_code == 200
    assert response.json() == {"userId": "user-1"}


def test_health_check_needs_no_api_key(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "API Running"}


def test_api_key_middleware_rejects_missing_header(client):
    """Given a missing API key header, when accessing a protected route, it should return 401 Unauthorized."""
    response = client.get("/whoami")
    assert response.status_code == 401
    assert response.json()["message"] == "Missing API key. Include 'X-API-Key' header in your request."


def test_api_key_middleware_rejects_invalid_key(client):
    """Given an invalid API key, when accessing a protected route, it should return 403 Forbidden."""
    response = client.get("/whoami", headers={"X-API-Key": "wrong-key"})
    assert response.status_code == 403
    assert response.json()["message"] == "Invalid API key"


def test_api_key_middleware_handles_malformed_header(client):
    """Given an empty API key header, when accessing a protected route, it should return 401 Unauthorized."""
    response = client.get("/whoami", headers={"X-API-Key": ""})
    assert response.status_code == 401


def test_unconfigured_api_key_is_a_server_error(client, monkeypatch):
    monkeypatch.setattr(APIKeyMiddleware, "API_KEY", "")
    response = client.get("/whoami", headers={"X-API-Key": "anything"})
    assert response.status_code == 500


@pytest.mark.parametrize("user_header", [{}, {"X-User-Id": "   "}])
def test_missing_user_identity_is_unauthenticated(client, user_header):
    """Given a valid API key but no caller identity, the request should be rejected with 401."""
    response = client.get("/whoami", headers={"X-API-Key": "valid-key", **user_header})
    assert response.status_code == 401
    assert response.json() == {"message": "User not authenticated"}
