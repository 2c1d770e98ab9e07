import pytest
from fastapi.testclient import TestClient

from app.core import health as health_module
from app.main import app

client = TestClient(app)

check_hsm = health_module._check_hsm
check_storage = health_module._check_storage


async def _ok():
    return {"status": "ok"}


async def _db_down():
    return {"status": "error", "error": "unreachable"}


@pytest.fixture(autouse=True)
def _mock_env(monkeypatch):
    monkeypatch.setattr(health_module.settings, "environment", "test")
    monkeypatch.setattr(health_module, "_check_db", _ok)
    monkeypatch.setattr(health_module, "_check_redis", _ok)
    monkeypatch.setattr(health_module, "_check_hsm", lambda: {"status": "ok", "key_labels": 12})
    monkeypatch.setattr(health_module, "_check_storage", lambda: {"status": "ok"})
    yield


def test_health_live_returns_ok() -> None:
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert "timestamp" in payload


def test_health_ready_ok() -> None:
    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert payload.get("ready") is True
    assert set(payload["checks"]) == {"api", "database", "redis", "hsm", "storage"}


def test_health_ready_degraded_returns_503(monkeypatch) -> None:
    monkeypatch.setattr(health_module, "_check_db", _db_down)

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 503
    body = response.json()
    assert body["code"] == "service_unavailable"
    assert body["data"]["status"] == "degraded"
    assert body["data"]["ready"] is False
    assert body["data"]["checks"]["database"]["status"] == "error"


def test_plain_health_reports_degraded_with_200(monkeypatch) -> None:
    monkeypatch.setattr(health_module, "_check_storage", lambda: {"status": "error", "error": "read-only"})

    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["data"]["ready"] is False


def test_disabled_hsm_is_still_ready(monkeypatch) -> None:
    monkeypatch.setattr(health_module, "_check_hsm", lambda: {"status": "disabled"})

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json()["data"]["checks"]["hsm"]["status"] == "disabled"


def test_hsm_check_reflects_settings(monkeypatch) -> None:
    monkeypatch.setattr(health_module.settings, "hsm_enabled", False)
    assert check_hsm() == {"status": "disabled"}

    monkeypatch.setattr(health_module.settings, "hsm_enabled", True)
    result = check_hsm()
    assert result["status"] == "ok"
    assert result["key_labels"] > 0


def test_storage_check(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(health_module.settings, "storage_root", str(tmp_path))
    assert check_storage() == {"status": "ok"}

    monkeypatch.setattr(health_module.settings, "storage_root", str(tmp_path / "missing"))
    assert check_storage()["status"] == "error"


def test_status_summary() -> None:
    response = client.get("/api/v1/status/summary")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert payload.get("ready") is True
    assert payload.get("version") == health_module.APP_VERSION
    assert payload.get("assignment_strategy") == health_module.settings.assignment_strategy
