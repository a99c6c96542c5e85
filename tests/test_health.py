from fastapi.testclient import TestClient

import app.routes.health as health_routes
from app.main import app
from graphstore.db import DB


def test_root_lists_endpoints():
    client = TestClient(app)

    response = client.get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["service"] == "graphstore"
    assert body["endpoints"]["health"] == "/health"


def test_health_ok_when_schema_current(session_factory, monkeypatch):
    monkeypatch.setattr(
        health_routes,
        "get_schema_revisions",
        lambda engine: ("0002_relationships_activities_audit", "0002_relationships_activities_audit"),
    )
    client = TestClient(app)

    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"]["schema_up_to_date"] is True


def test_health_reports_stale_schema(session_factory, monkeypatch):
    monkeypatch.setattr(
        health_routes,
        "get_schema_revisions",
        lambda engine: ("0001_entities", "0002_relationships_activities_audit"),
    )
    client = TestClient(app)

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["detail"]["database"]["schema_up_to_date"] is False


def test_health_without_database(monkeypatch):
    monkeypatch.setattr(DB, "engine", None)
    client = TestClient(app)

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["detail"]["database"]["error"] == "db_not_initialized"
