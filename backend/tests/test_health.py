# Overview: Pytest coverage for the /health endpoint.

from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from wellpos.extensions import db, session_cache


class TestHealth:
    """GET /health"""

    def test_healthy(self, client, db_session):
        response = client.get('/health')
        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"
        assert body["checks"]["session_cache"]["status"] == "healthy"
        assert body["timestamp"].endswith("Z")

    def test_cache_down_is_degraded(self, client, db_session):
        with patch.object(session_cache, "is_available", return_value=False):
            response = client.get('/health')
        assert response.status_code == 503
        assert response.get_json()["status"] == "degraded"

    def test_database_down_is_unhealthy(self, client, db_session):
        error = OperationalError("SELECT 1", {}, Exception("connection refused"))
        with patch.object(db.session, "execute", side_effect=error):
            response = client.get('/health')
        assert response.status_code == 503
        body = response.get_json()
        assert body["status"] == "unhealthy"
        assert body["checks"]["database"]["error"] == "Database error"
