"""
Tests for the FastAPI application wiring.
"""

from payhooks.config import settings


class TestRootEndpoints:
    """Tests for service-level endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {
            "service": settings.api_title,
            "version": settings.api_version,
            "status": "running",
        }

    def test_metrics(self, client):
        client.get("/")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "payhooks_http_requests_total" in response.text

    def test_unknown_path_uses_error_body(self, client):
        response = client.get("/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}


class TestPaymentMetrics:
    """Payment outcomes show up in metrics."""

    def test_crypto_outcome_counted(self, client):
        client.post("/api/verify-crypto", json={"email": "a@b.co", "txHash": "0x1"})
        response = client.get("/metrics")
        assert 'payhooks_crypto_verifications_total{outcome="malformed"}' in response.text
