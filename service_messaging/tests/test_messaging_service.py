"""
Unit tests for the messaging service HTTP surface.
"""

import pytest
from fastapi.testclient import TestClient

from shared.test_helpers import TestDataFactory, TEST_SCOPE, TEST_PROPOSITION_ID
from service_messaging.app.main import MessagingService, create_app


class TestMessagingService:
    """Test cases for MessagingService."""

    @pytest.fixture
    def service(self):
        """Create MessagingService instance."""
        return MessagingService()

    @pytest.fixture
    def client(self, service):
        """Create test client."""
        return TestClient(service.app)

    @pytest.fixture
    def decision_request(self):
        """Decision request inside the feed rule window."""
        return {
            "payload": TestDataFactory.create_decision_event(),
            "context": {"~timestampu": 1700000000},
        }

    def test_create_app(self):
        """Test the app factory."""
        app = create_app()

        assert app.title == "Messaging Service"

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "messaging"
        assert "rule_evaluation" in data["capabilities"]

    def test_health_endpoint(self, client):
        """Test health check endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"]["proposition_store"].startswith("ok")

    def test_process_decisions(self, client, decision_request):
        """Test a decision batch is judged and stored."""
        response = client.post("/decisions", json=decision_request)

        assert response.status_code == 200
        data = response.json()
        assert len(data["qualified"]) == 1
        assert data["qualified"][0]["id"] == TEST_PROPOSITION_ID
        assert data["unqualified"] == []
        assert data["skipped"] == 0

        stored = client.get("/propositions", params={"scope": TEST_SCOPE}).json()
        assert stored["total"] == 1
        assert stored["propositions"][0]["items"] == data["qualified"][0]["items"]

    def test_process_decisions_outside_window(self, client, decision_request):
        """Test content outside its window is reported as unqualified."""
        decision_request["context"] = {"~timestampu": 1}

        data = client.post("/decisions", json=decision_request).json()

        assert data["qualified"] == []
        assert len(data["unqualified"]) == 1

    def test_diagnostics_are_returned(self, client):
        """Test malformed conditions come back as diagnostics."""
        ruleset = TestDataFactory.create_feed_ruleset({"type": "group", "definition": {"logic": "xor", "conditions": []}})
        proposition = TestDataFactory.create_proposition(
            items=[TestDataFactory.create_ruleset_item(content=ruleset)]
        )

        data = client.post("/decisions", json={"payload": [proposition]}).json()

        assert data["qualified"] == []
        assert data["diagnostics"][0]["code"] == "MALFORMED_CONDITION"

    def test_malformed_payload(self, client):
        """Test an unreadable payload is a client error."""
        response = client.post("/decisions", json={"payload": "not a payload"})

        assert response.status_code == 400
        assert response.json()["code"] == "MALFORMED_PAYLOAD"

    def test_requested_scopes_are_cleared(self, client, decision_request):
        """Test requested scopes with nothing qualified are emptied."""
        client.post("/decisions", json=decision_request)

        client.post("/decisions", json={"payload": [], "requested_scopes": [TEST_SCOPE]})

        assert client.get("/propositions", params={"scope": TEST_SCOPE}).json()["total"] == 0

    def test_get_unknown_scope(self, client):
        """Test reading a scope with nothing stored."""
        response = client.get("/propositions", params={"scope": "mobileapp://unknown"})

        assert response.status_code == 200
        assert response.json()["propositions"] == []

    def test_get_requires_scope(self, client):
        """Test the scope parameter is required."""
        assert client.get("/propositions").status_code == 422

    def test_delete_scope(self, client, decision_request):
        """Test clearing a scope."""
        client.post("/decisions", json=decision_request)

        response = client.delete("/propositions", params={"scope": TEST_SCOPE})

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert client.delete("/propositions", params={"scope": TEST_SCOPE}).status_code == 404

    def test_stats(self, client, decision_request):
        """Test store statistics."""
        client.post("/decisions", json=decision_request)

        data = client.get("/propositions/stats").json()

        assert data["store"]["total_scopes"] == 1
        assert data["store"]["propositions_per_scope"][TEST_SCOPE] == 1

    def test_metrics_endpoint(self, client, decision_request):
        """Test the metrics endpoint exposes decision metrics."""
        client.post("/decisions", json=decision_request)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "decisions_processed_total" in response.text
        assert "store_scopes" in response.text

    def test_request_id_is_echoed(self, client):
        """Test the request id header is returned."""
        response = client.get("/", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
