"""Tests for health endpoints and application lifespan."""

from fastapi.testclient import TestClient

from app.core.config import settings
from app.main import app
from app.services.maintenance import MaintenanceScheduler


def test_health_is_minimal():
    resp = TestClient(app).get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_ready_when_keys_configured():
    resp = TestClient(app).get("/health/ready")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ready"}


def test_not_ready_without_keys(monkeypatch):
    monkeypatch.setattr(settings.app, "api_keys", None)

    resp = TestClient(app).get("/health/ready")

    assert resp.status_code == 503
    assert resp.json()["reason"] == "auth_not_configured"


def test_lifespan_starts_and_stops_maintenance():
    with TestClient(app) as client:
        scheduler = app.state.maintenance
        assert isinstance(scheduler, MaintenanceScheduler)
        assert scheduler.running is True
        assert client.get("/health").status_code == 200

    assert scheduler.running is False


def test_lifespan_without_maintenance(monkeypatch):
    monkeypatch.setattr(settings.queue, "maintenance_enabled", False)

    with TestClient(app) as client:
        assert app.state.maintenance is None
        assert client.get("/health").status_code == 200


def test_openapi_marks_only_mobile_routes_as_secured():
    schema = TestClient(app).get("/openapi.json").json()

    assert schema["paths"]["/mobile/message"]["post"]["security"] == [{"ApiKeyAuth": []}]
    assert schema["paths"]["/controller/heartbeat"]["post"]["security"] == []
    assert schema["paths"]["/health"]["get"]["security"] == []
    assert {t["name"] for t in schema["tags"]} >= {"Controller", "Mobile", "Health"}
