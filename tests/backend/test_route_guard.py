from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from backend.app.main import create_app
from backend.app.route_guard import (
    DEFAULT_ROUTE_RULES,
    RoutePolicy,
    RouteRule,
    policy_for_path,
)


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/api/auth/signin", RoutePolicy.public),
        ("/api/auth/callback/credentials", RoutePolicy.public),
        ("/login", RoutePolicy.public),
        ("/register", RoutePolicy.public),
        ("/_next/static/chunks/main.js", RoutePolicy.public),
        ("/_next/image", RoutePolicy.public),
        ("/favicon.ico", RoutePolicy.public),
        ("/images/logo.png", RoutePolicy.public),
        ("/campaigns/hero.svg", RoutePolicy.public),
        ("/health", RoutePolicy.public),
        ("/health/ready", RoutePolicy.public),
        ("/metrics", RoutePolicy.public),
        ("/api/campaigns/cmp_1/stats", RoutePolicy.api),
        ("/api/ai/completions", RoutePolicy.api),
        ("/dashboard", RoutePolicy.page),
        ("/campaigns/cmp_1", RoutePolicy.page),
        ("/", RoutePolicy.page),
        ("/photo.png.html", RoutePolicy.page),
    ],
)
def test_default_rules_classify_paths(path: str, expected: RoutePolicy) -> None:
    assert policy_for_path(path, DEFAULT_ROUTE_RULES) is expected


def test_first_matching_rule_wins() -> None:
    rules = (
        RouteRule.compile(r"^/api/public/", RoutePolicy.public),
        RouteRule.compile(r"^/api/", RoutePolicy.api),
    )
    assert policy_for_path("/api/public/pricing", rules) is RoutePolicy.public
    assert policy_for_path("/api/private", rules) is RoutePolicy.api


def test_unmatched_path_falls_back_to_page_policy() -> None:
    assert policy_for_path("/anything", ()) is RoutePolicy.page


def test_page_without_session_redirects_to_sign_in(auth_client) -> None:
    response = auth_client.get("/dashboard?tab=calls", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "/login?callbackUrl=%2Fdashboard%3Ftab%3Dcalls"


def test_page_with_session_cookie_passes_guard(auth_client, session_token) -> None:
    response = auth_client.get(
        "/dashboard",
        headers={"Cookie": f"session_token={session_token('user-1')}"},
        follow_redirects=False,
    )
    # No page is served by the API, but the guard let the request through.
    assert response.status_code == 404


def test_public_pages_are_not_redirected(auth_client) -> None:
    assert auth_client.get("/login", follow_redirects=False).status_code == 404
    assert auth_client.get("/health").status_code == 200
    assert auth_client.get("/metrics").status_code == 200


def test_api_without_session_gets_json_401(auth_client) -> None:
    response = auth_client.post("/api/campaigns/cmp_1/calls", json={})
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_sign_in_path_is_configurable(monkeypatch) -> None:
    monkeypatch.setenv("PERSISTENCE_ENABLED", "false")
    monkeypatch.setenv("AUTH_ENABLED", "true")
    monkeypatch.setenv("SIGN_IN_PATH", "auth/sign-in")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = TestClient(create_app())

    response = client.get("/settings", follow_redirects=False)
    assert response.headers["location"] == "/auth/sign-in?callbackUrl=%2Fsettings"
    assert client.get("/auth/sign-in", follow_redirects=False).status_code == 404
