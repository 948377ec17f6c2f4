import mongomock
from fastapi.testclient import TestClient

import main
from database import get_db
from logging_config import get_logging_config


def test_root_and_health(client):
    assert "running" in client.get("/").json()["message"]
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["database"] == "connected"


def test_health_reports_unreachable_database(client, monkeypatch):
    monkeypatch.setattr(main, "ping", lambda db: False)
    body = client.get("/api/health").json()
    assert body["status"] == "degraded"


def test_request_id_is_echoed(client):
    response = client.get("/", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"
    assert "X-Process-Time" in response.headers
    assert client.get("/").headers["X-Request-ID"]


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/nowhere")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found", "error": "NotFound"}


def test_startup_prepares_indexes():
    db = mongomock.MongoClient()["fresh"]
    main.app.dependency_overrides[get_db] = lambda: db
    try:
        with TestClient(main.app) as client:
            assert client.get("/").status_code == 200
    finally:
        main.app.dependency_overrides.clear()
    assert "slug_1" in db["room"].index_information()


def test_json_log_format():
    config = get_logging_config("debug", "json")
    assert config["handlers"]["console"]["formatter"] == "json"
    assert config["handlers"]["console"]["level"] == "DEBUG"
