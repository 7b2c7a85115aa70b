"""Tests for X-Request-ID middleware.

Tests cover:
- Request ID generation when missing
- Request ID preservation when valid
- Request ID normalization (UUID lowercase)
- Request ID replacement when invalid
- Request ID presence on auth failures and in error bodies
"""

from uuid import UUID

import pytest

from zeal.middleware.request_id import resolve_request_id
from tests.helpers import auth_headers


class TestResolveRequestId:
    def test_generated_when_missing(self):
        UUID(resolve_request_id(None))

    def test_valid_custom_id_kept(self):
        assert resolve_request_id("abc_def-123") == "abc_def-123"

    def test_uuid_lowercased(self):
        assert (
            resolve_request_id("550E8400-E29B-41D4-A716-446655440000")
            == "550e8400-e29b-41d4-a716-446655440000"
        )

    @pytest.mark.parametrize("bad", ["has space", "semi;colon", "x" * 129, ""])
    def test_invalid_replaced(self, bad):
        result = resolve_request_id(bad)
        assert result != bad
        UUID(result)


class TestRequestIdMiddleware:
    def test_generated_for_authenticated_request(self, client, make_user):
        response = client.get("/notifications", headers=auth_headers(make_user().id))

        assert response.status_code == 200
        UUID(response.headers["X-Request-ID"])

    def test_auth_failure_carries_request_id_in_body(self, client):
        response = client.get("/notifications", headers={"X-Request-ID": "trace-401"})

        assert response.status_code == 401
        assert response.headers["X-Request-ID"] == "trace-401"
        assert response.json()["error"]["request_id"] == "trace-401"

    def test_api_error_carries_request_id(self, client, make_user):
        response = client.get(
            "/content/post/00000000-0000-0000-0000-000000000000",
            headers={**auth_headers(make_user().id), "X-Request-ID": "trace-404"},
        )

        assert response.status_code == 404
        assert response.json()["error"]["request_id"] == "trace-404"
