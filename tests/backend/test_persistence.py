from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from backend.app.main import create_app
from backend.app.persistence import CallPersistence


def _new_client(monkeypatch, db_path: Path) -> TestClient:
    monkeypatch.setenv("PERSISTENCE_ENABLED", "true")
    monkeypatch.setenv("AUTH_ENABLED", "false")
    monkeypatch.setenv("PERSISTENCE_DB_PATH", str(db_path))
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{str(db_path).replace(chr(92), '/')}")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return TestClient(create_app())


def test_call_stats_survive_restart(monkeypatch, tmp_path) -> None:
    db_path = tmp_path / "prospect_ai.sqlite3"
    first_client = _new_client(monkeypatch, db_path)
    for status, duration in [("completed", 60), ("busy", 0)]:
        response = first_client.post(
            "/api/campaigns/cmp_persist/calls",
            json={"lead_phone": "9000019999", "status": status, "duration_seconds": duration},
        )
        assert response.status_code == 200

    restarted_client = _new_client(monkeypatch, db_path)
    stats = restarted_client.get("/api/campaigns/cmp_persist/stats").json()["stats"]
    assert stats["total_calls"] == 2
    assert stats["completed_calls"] == 1
    assert stats["busy_calls"] == 1
    assert stats["total_duration_seconds"] == 60


def test_readiness_checks_database(monkeypatch, tmp_path) -> None:
    client = _new_client(monkeypatch, tmp_path / "ready.sqlite3")
    assert client.get("/health/ready").json() == {"status": "ready"}

    monkeypatch.setattr(client.app.state.store.persistence, "ping", lambda: False)
    assert client.get("/health/ready").status_code == 503


def test_sqlite_url_creates_missing_parent_directories(tmp_path) -> None:
    db_path = tmp_path / "nested" / "prospect_ai.sqlite3"
    persistence = CallPersistence(f"sqlite:///{db_path.as_posix()}")
    assert db_path.parent.exists()
    assert persistence.ping()
    assert persistence.list_calls() == []
