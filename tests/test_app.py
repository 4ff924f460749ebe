"""
Tests for the diagnostics app.
"""

import pytest
from fastapi.testclient import TestClient

from widgetlink.app.dependencies import SessionRegistry, get_sessions
from widgetlink.app.main import app
from widgetlink.connections import (
    InterfaceConnection,
    StaticConnection,
    SubscriptionConnection,
    WidgetLinkError,
    WidgetSession,
)


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def client(registry):
    app.dependency_overrides[get_sessions] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestSessionRegistry:
    def test_register_and_unregister(self, registry, context, resolver, pubsub):
        session = WidgetSession(context, resolver=resolver)
        session.mount("feed", SubscriptionConnection(topic="orders"))
        registry.register("s1", session)

        with pytest.raises(WidgetLinkError):
            registry.register("s1", session)

        assert registry.unregister("s1") is True
        assert registry.unregister("s1") is False
        assert not pubsub.is_subscribed("orders")


class TestDiagnosticsApp:
    """Tests for the HTTP endpoints."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client, registry, context, resolver):
        registry.register("s1", WidgetSession(context, resolver=resolver))

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["sessions"] == 1

    def test_list_widgets(self, client, registry, context, resolver):
        session = WidgetSession(context, resolver=resolver)
        session.mount("title", StaticConnection())
        session.mount("users", InterfaceConnection(function_name="missing"))
        registry.register("s1", session)

        assert client.get("/api/v1/sessions").json() == {"sessions": ["s1"]}

        body = client.get("/api/v1/sessions/s1/widgets").json()
        widgets = {w["widget_id"]: w for w in body["widgets"]}

        assert body["context"]["connected"] is True
        assert widgets["title"]["mode"] == "static"
        assert widgets["users"]["mode"] == "connected"
        assert widgets["users"]["state"]["error"]["kind"] == "function_not_found"

    def test_unknown_session(self, client):
        response = client.get("/api/v1/sessions/nope/widgets")
        assert response.status_code == 404

    def test_check_connection(self, client):
        response = client.post(
            "/api/v1/connections/check",
            json={"kind": "subscription", "topic": "orders"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "valid": True,
            "kind": "subscription",
            "mode": "connected",
            "connection_type": "Subscription",
            "source": {"kind": "subscription", "topic": "orders", "filtered": False},
        }

    def test_check_invalid_connection(self, client):
        response = client.post("/api/v1/connections/check", json={"kind": "telepathy"})

        assert response.status_code == 422
        assert "Invalid connection definition" in response.json()["detail"]
