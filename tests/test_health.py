"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status and version fields
  - No authentication required
"""

from __future__ import annotations

from api.main import VERSION


def test_health_returns_200_with_version(api_client):
    """Health endpoint returns 200 with status and version."""
    client, _tokens, _mailer = api_client
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "version": VERSION}


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    client, _tokens, _mailer = api_client
    resp = client.get("/api/v1/health", headers={})
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
