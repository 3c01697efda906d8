"""
Tests for the application shell: health check and error envelope.
"""


class TestHealth:
    def test_health_check(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["database"] == "healthy"

    def test_root_redirects_to_docs(self, client):
        response = client.get("/", follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"].endswith("/docs")


class TestErrorEnvelope:
    def test_domain_error_shape(self, client, auth_headers):
        response = client.get("/api/v1/conversations/404", headers=auth_headers)
        assert response.status_code == 404
        assert response.json() == {"error": True, "message": "Conversation not found", "status_code": 404}
