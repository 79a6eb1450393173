from __future__ import annotations

from datetime import datetime, timedelta

import jwt
import pytest
from fastapi.testclient import TestClient

from backend.app.main import create_app

TEST_SECRET = "test-secret"


def make_token(subject: str, *, secret: str = TEST_SECRET, hours: int = 1, **claims) -> str:
    payload = {
        "sub": subject,
        "exp": datetime.utcnow() + timedelta(hours=hours),
        **claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setenv("PERSISTENCE_ENABLED", "false")
    monkeypatch.setenv("AUTH_ENABLED", "false")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    app = create_app()
    return TestClient(app)


@pytest.fixture()
def auth_client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setenv("PERSISTENCE_ENABLED", "false")
    monkeypatch.setenv("AUTH_ENABLED", "true")
    monkeypatch.setenv("JWT_SECRET", TEST_SECRET)
    monkeypatch.delenv("SESSION_COOKIE_NAME", raising=False)
    monkeypatch.delenv("SIGN_IN_PATH", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    app = create_app()
    return TestClient(app)


@pytest.fixture()
def session_token():
    return make_token
