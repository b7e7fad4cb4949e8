"""Integration tests for registration, login and Google sign-in."""
from __future__ import annotations

import os
from typing import Iterator
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_lenscape.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from lenscape.clients import google_oauth  # noqa: E402
from lenscape.database import Base, SessionLocal, engine  # noqa: E402
from lenscape.main import app  # noqa: E402
from lenscape.models import User  # noqa: E402


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
    yield


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _register(client: TestClient, **overrides) -> dict:
    payload = {
        "full_name": "Amani Wanjiru",
        "username": "amani",
        "email": "amani@example.co.ke",
        "password": "sunlight-42",
        "confirm_password": "sunlight-42",
    }
    payload.update(overrides)
    return client.post("/auth/register", json=payload)


def test_register_returns_token_and_client_role(client):
    response = _register(client)
    assert response.status_code == 201
    body = response.json()
    assert body["access_token"]
    assert body["token_type"] == "bearer"
    assert body["user_type"] == "client"

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    profile = me.json()
    assert profile["username"] == "amani"
    assert profile["email"] == "amani@example.co.ke"
    assert profile["initials"] == "AW"
    assert profile["role_display_name"] == "Client"


def test_register_rejects_bad_input(client):
    assert _register(client, confirm_password="different-1").status_code == 422
    assert _register(client, password="short", confirm_password="short").status_code == 422
    assert _register(client, username="ab").status_code == 422
    assert _register(client, email="not-an-email").status_code == 422
    assert _register(client, full_name="   ").status_code == 422


def test_register_duplicate_username_and_email(client):
    assert _register(client).status_code == 201

    same_username = _register(client, username="AMANI", email="other@example.com")
    assert same_username.status_code == 409

    same_email = _register(client, username="amani2")
    assert same_email.status_code == 409


def test_login_and_logout(client):
    _register(client)

    wrong = client.post("/auth/login", json={"email": "amani@example.co.ke", "password": "moonlight-42"})
    assert wrong.status_code == 401
    assert wrong.json()["detail"] == "Invalid email or password"

    unknown = client.post("/auth/login", json={"email": "ghost@example.com", "password": "sunlight-42"})
    assert unknown.status_code == 401

    ok = client.post("/auth/login", json={"email": "Amani@Example.co.ke", "password": "sunlight-42"})
    assert ok.status_code == 200
    token = ok.json()["access_token"]

    logout = client.post("/auth/logout", headers={"Authorization": f"Bearer {token}"})
    assert logout.status_code == 204


def test_protected_routes_require_token(client):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"}).status_code == 401


def test_google_sign_in_unavailable_without_configuration(client, monkeypatch):
    def _missing() -> google_oauth.GoogleConfig:
        raise google_oauth.OAuthConfigurationError("not configured")

    monkeypatch.setattr(google_oauth, "load_google_config", _missing)
    response = client.get("/auth/oauth/google/authorize")
    assert response.status_code == 503


def test_unknown_oauth_provider(client):
    assert client.get("/auth/oauth/myspace/authorize").status_code == 404


def test_google_sign_in_creates_account(client, monkeypatch):
    config = google_oauth.GoogleConfig(
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri="http://localhost:8000/auth/oauth/google/callback",
        timeout=5.0,
    )
    seen_codes: list[str] = []

    async def _fake_fetch(cfg: google_oauth.GoogleConfig, code: str) -> google_oauth.GoogleProfile:
        seen_codes.append(code)
        return google_oauth.GoogleProfile(
            email="jabali@gmail.com",
            name="Jabali Otieno",
            picture="https://example.test/jabali.png",
            email_verified=True,
        )

    monkeypatch.setattr(google_oauth, "load_google_config", lambda: config)
    monkeypatch.setattr(google_oauth, "fetch_profile", _fake_fetch)

    start = client.get("/auth/oauth/google/authorize", params={"redirect_to": "/feed"})
    assert start.status_code == 200
    started = start.json()
    query = parse_qs(urlparse(started["authorize_url"]).query)
    assert query["client_id"] == ["client-id"]
    assert query["state"] == [started["state"]]

    callback = client.get(
        "/auth/oauth/google/callback",
        params={"code": "auth-code", "state": started["state"]},
    )
    assert callback.status_code == 200
    assert seen_codes == ["auth-code"]
    assert callback.json()["user_type"] == "client"

    with SessionLocal() as session:
        users = session.query(User).all()
        assert len(users) == 1
        assert users[0].email == "jabali@gmail.com"
        assert users[0].username == "jabali"
        assert users[0].oauth_provider == "google"

    again = client.get("/auth/oauth/google/callback", params={"code": "second", "state": started["state"]})
    assert again.status_code == 200
    with SessionLocal() as session:
        assert session.query(User).count() == 1


def test_google_callback_rejects_tampered_state(client, monkeypatch):
    monkeypatch.setattr(
        google_oauth,
        "load_google_config",
        lambda: google_oauth.GoogleConfig("id", "secret", "http://localhost/cb", 5.0),
    )
    response = client.get("/auth/oauth/google/callback", params={"code": "abc", "state": "forged"})
    assert response.status_code == 400
