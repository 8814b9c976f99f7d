"""Unit tests for the Clerk Backend API client."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from tenacity import wait_none

from app.core.config import settings
from app.exceptions.base import UpstreamServiceError
from app.services.clerk_client import ClerkClient

API_URL = "https://api.clerk.test/v1"


@pytest.fixture
def clerk():
    return ClerkClient(secret_key="sk_test", api_url=API_URL, timeout=1.0)


@pytest.fixture
def http_client():
    """Patch httpx.AsyncClient inside the module and hand back the inner client."""
    with patch("app.services.clerk_client.httpx.AsyncClient") as mock_client_cls:
        mock_client = MagicMock()
        mock_client.request = AsyncMock()
        mock_client_cls.return_value.__aenter__.return_value = mock_client
        mock_client.constructor = mock_client_cls
        yield mock_client


def respond(status_code, json=None, method="GET"):
    return httpx.Response(status_code, json=json, request=httpx.Request(method, API_URL))


class TestClerkClient:
    @pytest.mark.asyncio
    async def test_update_membership_sends_role(self, clerk, http_client):
        http_client.request.return_value = respond(200, {"role": "org:member"}, "PATCH")

        result = await clerk.update_organization_membership("org_1", "user_1", "org:member")

        assert result == {"role": "org:member"}
        args, kwargs = http_client.request.await_args
        assert args == ("PATCH", "/organizations/org_1/memberships/user_1")
        assert kwargs["json"] == {"role": "org:member"}
        headers = http_client.constructor.call_args.kwargs["headers"]
        assert headers == {"Authorization": "Bearer sk_test"}

    @pytest.mark.asyncio
    async def test_is_organization_member_accepts_both_envelopes(self, clerk, http_client):
        membership = {"public_user_data": {"user_id": "user_1"}}

        http_client.request.return_value = respond(200, {"data": [membership], "total_count": 1})
        assert await clerk.is_organization_member("org_1", "user_1") is True

        http_client.request.return_value = respond(200, [membership])
        assert await clerk.is_organization_member("org_1", "user_1") is True

        http_client.request.return_value = respond(200, {"data": []})
        assert await clerk.is_organization_member("org_1", "user_1") is False

    @pytest.mark.asyncio
    async def test_error_status_is_upstream_failure(self, clerk, http_client):
        http_client.request.return_value = respond(404, {"errors": []}, "DELETE")

        with pytest.raises(UpstreamServiceError) as exc_info:
            await clerk.delete_organization("org_1")

        assert exc_info.value.details["status"] == 404

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self, clerk, http_client, monkeypatch):
        monkeypatch.setattr(ClerkClient._send_with_retry.retry, "wait", wait_none())
        http_client.request.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(UpstreamServiceError):
            await clerk.update_user_metadata("user_1", {"role": "admin"})

        assert http_client.request.await_count == settings.clerk_max_retry_attempts

    @pytest.mark.asyncio
    async def test_not_configured(self, http_client):
        clerk = ClerkClient(api_url=API_URL)
        clerk.secret_key = None

        with pytest.raises(UpstreamServiceError):
            await clerk.delete_organization("org_1")
        http_client.request.assert_not_awaited()
