"""
Health check and authentication helper tests.
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from src.auth.jwt import create_access_token, get_token_from_request, verify_token


@pytest.mark.asyncio
async def test_health_endpoint(client):
    """Test basic health check endpoint."""
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "commission-engine"}


@pytest.mark.asyncio
async def test_readiness_endpoint(client):
    response = await client.get("/api/health/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready", "database": "connected", "active_rules": 0}


@pytest.mark.asyncio
async def test_readiness_counts_active_rules(client, admin_headers):
    await client.post(
        "/api/admin/commission-rules",
        json={"scope": "global", "rate": "10"},
        headers=admin_headers,
    )
    response = await client.get("/api/health/ready")
    assert response.json()["active_rules"] == 1


@pytest.mark.asyncio
async def test_readiness_unavailable_database(client):
    """A failing database answers 503 so the instance is taken out of rotation."""
    from src.db import get_db
    from src.main import app

    class _BrokenSession:
        async def scalar(self, *args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    async def _broken_db():
        yield _BrokenSession()

    app.dependency_overrides[get_db] = _broken_db

    response = await client.get("/api/health/ready")
    assert response.status_code == 503
    assert response.json() == {"status": "not_ready", "database": "unavailable"}

    # Liveness does not depend on the database
    live = await client.get("/api/health/live")
    assert live.status_code == 200


@pytest.mark.asyncio
async def test_root_redirects_to_health(client):
    response = await client.get("/")
    assert response.status_code == 302
    assert response.headers["location"] == "/api/health"


def test_token_roundtrip():
    """Test JWT creation and verification."""
    token = create_access_token(7, "supplier", supplier_id=9)
    payload = verify_token(token)

    assert payload == {"user_id": 7, "role": "supplier", "supplier_id": 9}


def test_expired_token():
    token = create_access_token(7, "admin", expires_delta=timedelta(seconds=-1))
    assert verify_token(token) is None


def test_unknown_role_rejected():
    assert verify_token(create_access_token(7, "manager")) is None


def test_garbage_token():
    assert verify_token("not.a.token") is None


def test_token_from_header_or_cookie():
    header_request = SimpleNamespace(
        headers={"Authorization": "Bearer abc"}, cookies={"access_token": "cookie"}
    )
    assert get_token_from_request(header_request) == "abc"

    cookie_request = SimpleNamespace(headers={}, cookies={"access_token": "cookie"})
    assert get_token_from_request(cookie_request) == "cookie"

    empty_request = SimpleNamespace(headers={}, cookies={})
    assert get_token_from_request(empty_request) is None
