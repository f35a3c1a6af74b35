"""Tests for the health endpoint, metrics endpoint and app factory."""

from __future__ import annotations

from fastapi.testclient import TestClient

from btc_portal.api.app import create_app


def test_health_endpoint(client, rpc_stub):
    """GET /health reports both dependencies."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "database": "connected",
        "btcfullnode": "connected",
    }

    rpc_stub.node_down = True
    assert client.get("/health").json()["btcfullnode"] == "disconnected"


def test_health_before_startup(app_config):
    """Without the lifespan running there is no engine to ask."""
    client = TestClient(create_app(config=app_config))
    assert client.get("/health").json()["status"] == "unhealthy"


def test_endpoints_need_engine(app_config):
    client = TestClient(create_app(config=app_config))
    response = client.get("/api/v1/getestimatedunshieldingfee")
    assert response.status_code == 503
    assert response.json()["code"] == "engine-not-ready"


def test_app_has_openapi(client):
    response = client.get("/openapi.json")
    assert response.status_code == 200
    schema = response.json()
    assert schema["info"]["title"] == "btc-portal"
    assert "/api/v1/addportalshieldingaddress" in schema["paths"]


def test_metrics_endpoint(client):
    client.get("/api/v1/getestimatedunshieldingfee")
    response = client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "http_request_total{" in response.text
    assert 'path="/api/v1/getestimatedunshieldingfee"' in response.text
    assert "btc_portal_history_duration_seconds" in response.text


def test_metrics_disabled(app_config):
    app_config.metrics.enabled = False
    with TestClient(create_app(config=app_config)) as client:
        assert client.get("/metrics").status_code == 404


def test_engine_closed_on_shutdown(app_config):
    app = create_app(config=app_config)
    with TestClient(app):
        engine = app.state.engine
        assert engine.is_initialized
    assert not engine.is_initialized
    assert app.state.engine is None
