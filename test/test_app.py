import logging

import mongomock
from fastapi.testclient import TestClient

from conftest import ALLOWED_ORIGIN
from database.connection import MongoConnection
from errors import AppError
from main import ROUTER_MOUNTS, create_app


def test_healthz_reports_env_and_store_state(client, settings, mongo):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "env": settings.ENV, "db": 1}

    mongo.close()
    assert client.get("/healthz").json()["db"] == 0


def test_healthz_before_connecting(settings):
    app = create_app(settings, MongoConnection.from_settings(settings))
    with TestClient(app) as client:
        assert client.get("/healthz").json() == {"ok": True, "env": "development", "db": 0}


def test_unmatched_path_returns_json_404(client):
    response = client.get("/definitely/not/here")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


def test_prefixes_without_router_module_are_skipped(client):
    for prefix in ("/api/groups", "/api/contacts", "/api/invites", "/api/test"):
        response = client.get(prefix + "/")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}


def test_auth_router_is_mounted_under_both_prefixes(client):
    # Cuerpo vacío: 400 de validación prueba que la ruta existe
    for prefix in ("/api/auth", "/auth"):
        assert client.post(f"{prefix}/sign-up", json={}).status_code == 400
    assert client.get("/api/users/").status_code == 200
    assert {prefix for prefix, _, _ in ROUTER_MOUNTS} >= {"/api/auth", "/auth", "/api/users"}


def test_unhandled_error_exposes_message_outside_production(app):
    @app.get("/boom")
    def boom():
        raise RuntimeError("boom")

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/boom")
    assert response.status_code == 500
    assert response.json() == {"error": "boom"}


def test_unhandled_error_is_generic_in_production(make_settings):
    settings = make_settings(ENV="production", MONGODB_URI="mongodb://localhost:27017")
    app = create_app(settings, MongoConnection.from_settings(settings, client_factory=mongomock.MongoClient))

    @app.get("/boom")
    def boom():
        raise RuntimeError("secret internals")

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/boom")
    assert response.status_code == 500
    assert response.json() == {"error": "Server error"}


def test_unhandled_error_keeps_cors_and_security_headers(app):
    @app.get("/boom")
    def boom():
        raise RuntimeError("boom")

    with TestClient(app) as client:
        response = client.get("/boom", headers={"Origin": ALLOWED_ORIGIN})
    assert response.status_code == 500
    assert response.json() == {"error": "boom"}
    assert response.headers["access-control-allow-origin"] == ALLOWED_ORIGIN
    assert response.headers["access-control-allow-credentials"] == "true"
    assert response.headers["x-content-type-options"] == "nosniff"


def test_production_error_is_not_reraised_nor_traced(make_settings, caplog):
    settings = make_settings(ENV="production", MONGODB_URI="mongodb://localhost:27017")
    app = create_app(settings, MongoConnection.from_settings(settings, client_factory=mongomock.MongoClient))

    @app.get("/boom")
    def boom():
        raise RuntimeError("secret internals")

    # raise_server_exceptions activo: si el error escapara de la pila, el cliente lo relanzaría
    with caplog.at_level(logging.ERROR), TestClient(app) as client:
        response = client.get("/boom")
    assert response.json() == {"error": "Server error"}
    errors = [record for record in caplog.records if record.levelno >= logging.ERROR]
    assert errors and all(record.exc_info is None for record in errors)
    assert "secret internals" not in caplog.text


def test_error_status_attribute_is_used(app):
    class Teapot(Exception):
        status_code = 418

    @app.get("/teapot")
    def teapot():
        raise Teapot("short and stout")

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/teapot")
    assert response.status_code == 418
    assert response.json() == {"error": "short and stout"}


def test_app_error_uses_its_status_and_message(app):
    @app.get("/gone")
    def gone():
        raise AppError("Contact archived", 410)

    with TestClient(app) as client:
        response = client.get("/gone")
    assert response.status_code == 410
    assert response.json() == {"error": "Contact archived"}


def test_validation_error_is_normalized(client):
    response = client.post("/api/auth/sign-up", json={"username": "alice"})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid request data"
    assert any(detail["field"].endswith("password") for detail in body["details"])


def test_store_dependent_routes_fail_when_store_is_down(settings):
    app = create_app(settings, MongoConnection.from_settings(settings))
    with TestClient(app) as client:
        response = client.get("/api/users/")
    assert response.status_code == 503
    assert response.json() == {"error": "Database not connected"}


def test_security_headers_are_set(client):
    response = client.get("/healthz")
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "SAMEORIGIN"
    assert "strict-transport-security" in response.headers


def test_large_responses_are_compressed(app):
    @app.get("/big")
    def big():
        return {"data": "x" * 5000}

    with TestClient(app) as client:
        response = client.get("/big", headers={"Accept-Encoding": "gzip"})
    assert response.headers["content-encoding"] == "gzip"
    assert response.json() == {"data": "x" * 5000}
