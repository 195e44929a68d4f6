"""Tests for the mock target service."""

from fastapi.testclient import TestClient

from mock_service.app import app


client = TestClient(app)


class TestMockService:
    def test_demo(self):
        response = client.get("/api/demo")
        assert response.status_code == 200
        assert response.json() == {"message": "ok"}

    def test_echo_counts_bytes(self):
        response = client.post(
            "/api/echo", content=b'{"hello":"world"}', headers={"Content-Type": "application/json"}
        )
        assert response.json() == {"bytes": 17, "content_type": "application/json"}

    def test_slow(self):
        response = client.get("/api/slow", params={"delay_ms": 1})
        assert response.json()["delay_ms"] == 1

    def test_flaky_always_fails(self):
        assert client.get("/api/flaky", params={"error_rate": 1}).status_code == 503

    def test_flaky_never_fails(self):
        assert client.get("/api/flaky", params={"error_rate": 0}).status_code == 200

    def test_flaky_rejects_bad_rate(self):
        assert client.get("/api/flaky", params={"error_rate": 2}).status_code == 422
