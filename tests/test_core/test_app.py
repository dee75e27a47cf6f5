"""
Tests for application wiring: correlation ids, health and error rendering
"""
import uuid

from teatrade.core.correlation import REQUEST_ID_HEADER


class TestCorrelationId:
    """Test X-Request-ID propagation"""

    def test_supplied_id_is_echoed(self, client):
        response = client.get("/", headers={REQUEST_ID_HEADER: "trace-abc-123"})

        assert response.status_code == 200
        assert response.headers[REQUEST_ID_HEADER] == "trace-abc-123"

    def test_missing_id_is_generated(self, client):
        response = client.get("/")

        generated = response.headers[REQUEST_ID_HEADER]
        assert uuid.UUID(generated).version == 4

    def test_empty_id_is_replaced(self, client):
        response = client.get("/", headers={REQUEST_ID_HEADER: ""})

        assert uuid.UUID(response.headers[REQUEST_ID_HEADER])


class TestHealth:
    """Test root and health endpoints"""

    def test_root(self, client):
        body = client.get("/").json()

        assert body["status"] == "online"
        assert body["version"] == "1.0.0"

    def test_health_reports_database(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["database"]["status"] == "connected"
        assert body["database"]["latency_ms"] >= 0


class TestErrorRendering:
    """Test failure envelopes"""

    def test_malformed_json_is_a_validation_failure(self, client):
        response = client.post(
            "/contacts",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"status": "fail", "message": "Malformed JSON body"}

    def test_path_type_errors_use_the_fail_shape(self, as_admin):
        response = as_admin.get("/stocks/abc")

        assert response.status_code == 400
        assert response.json()["status"] == "fail"

    def test_missing_token_is_unauthorized(self, client):
        response = client.get("/stocks")

        assert response.status_code == 401

    def test_wrong_role_is_forbidden(self, as_user):
        response = as_user.request("DELETE", "/stocks", json={"ids": [1]})

        assert response.status_code == 403
