"""
Tests for health checks, request tracing and the error envelope.
"""

import uuid

from httpx import ASGITransport, AsyncClient

from projecthub.main import create_app


class TestHealth:
    """Tests for the health endpoints."""

    async def test_health(self, client):
        response = await client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "version": "0.1.0",
            "environment": "development",
        }

    async def test_readiness_checks_database(self, client):
        response = await client.get("/api/health/ready")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"] == {"database": "healthy"}


class TestRequestId:
    """Tests for the X-Request-ID header."""

    async def test_generated_when_absent(self, client):
        response = await client.get("/api/health")
        assert uuid.UUID(response.headers["X-Request-ID"])

    async def test_caller_id_echoed(self, client):
        response = await client.get("/api/health", headers={"X-Request-ID": "trace-123"})
        assert response.headers["X-Request-ID"] == "trace-123"

    async def test_overlong_id_replaced(self, client):
        response = await client.get("/api/health", headers={"X-Request-ID": "x" * 500})
        assert response.headers["X-Request-ID"] != "x" * 500


class TestErrorEnvelope:
    """Tests for the shape of error responses."""

    async def test_unknown_route(self, client):
        response = await client.get("/api/nothing-here")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["data"] is None
        assert body["error"] == body["message"]

    async def test_entity_not_found(self, client, dev_headers):
        response = await client.get(f"/api/tasks/{uuid.uuid4()}", headers=dev_headers)

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": "Task not found",
            "message": "Task not found",
            "data": None,
        }

    async def test_validation_errors_listed(self, client, dev_headers):
        response = await client.post("/api/tasks", json={}, headers=dev_headers)

        assert response.status_code == 400
        assert response.json()["errors"] == [
            {"field": "title", "message": response.json()["message"]}
        ]

    async def test_duplicate_client_email(self, client, po_headers):
        body = {"name": "Acme Ltd", "email": "billing@acme.example.com"}
        first = await client.post("/api/clients", json=body, headers=po_headers)
        assert first.status_code == 201

        response = await client.post(
            "/api/clients",
            json={**body, "name": "Acme Again", "email": "BILLING@acme.example.com"},
            headers=po_headers,
        )

        assert response.status_code == 409
        assert response.json()["error"] == "A client with this email already exists"

    async def test_success_envelope(self, client, po_headers):
        response = await client.post("/api/clients", json={"name": "Globex"}, headers=po_headers)

        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Client created"
        assert body["data"]["name"] == "Globex"

    async def test_unhandled_error_hides_details(self, settings):
        app = create_app(settings)

        @app.get("/api/explode")
        async def explode():
            raise RuntimeError("secret connection string")

        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as http:
            response = await http.get("/api/explode")
        await app.state.engine.dispose()

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "Internal server error",
            "message": "Internal server error",
            "data": None,
        }
        assert "secret" not in response.text
