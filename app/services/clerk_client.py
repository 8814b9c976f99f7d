"""Clerk Backend API client for the few imperative calls the app needs."""

import logging
from typing import Any

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import settings
from app.exceptions.base import UpstreamServiceError

logger = logging.getLogger(__name__)


class ClerkClient:
    """Thin async wrapper over the Clerk Backend API.

    Transport-level failures are retried; any remaining error (including a
    non-2xx response) surfaces as ``UpstreamServiceError``.
    """

    def __init__(
        self,
        secret_key: str | None = None,
        api_url: str | None = None,
        timeout: float | None = None,
    ):
        self.secret_key = secret_key or settings.clerk_secret_key
        self.api_url = (api_url or settings.clerk_api_url).rstrip("/")
        self.timeout = timeout or settings.clerk_request_timeout

    async def update_organization_membership(self, org_id: str, user_id: str, role: str) -> dict:
        """Change a user's role inside an organization."""
        return await self._request(
            "PATCH",
            f"/organizations/{org_id}/memberships/{user_id}",
            json={"role": role},
        )

    async def update_user_metadata(self, user_id: str, public_metadata: dict[str, Any]) -> dict:
        """Merge ``public_metadata`` into the user's public metadata."""
        return await self._request(
            "PATCH",
            f"/users/{user_id}/metadata",
            json={"public_metadata": public_metadata},
        )

    async def list_organization_memberships(
        self, org_id: str, user_id: str | None = None, limit: int = 100
    ) -> list[dict]:
        params: dict[str, Any] = {"limit": limit}
        if user_id:
            params["user_id"] = user_id
        payload = await self._request(
            "GET", f"/organizations/{org_id}/memberships", params=params
        )
        # The API has returned both a bare list and a {"data": [...]} envelope
        if isinstance(payload, list):
            return payload
        return payload.get("data") or []

    async def is_organization_member(self, org_id: str, user_id: str) -> bool:
        memberships = await self.list_organization_memberships(org_id, user_id=user_id)
        for membership in memberships:
            public_user_data = membership.get("public_user_data") or {}
            if public_user_data.get("user_id") == user_id:
                return True
        return False

    async def delete_organization(self, org_id: str) -> dict:
        return await self._request("DELETE", f"/organizations/{org_id}")

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        if not self.secret_key:
            raise UpstreamServiceError("Identity provider is not configured")

        try:
            response = await self._send_with_retry(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Clerk {method} {path} returned {e.response.status_code}: {e.response.text}"
            )
            raise UpstreamServiceError(
                "Identity provider request failed",
                details={"operation": f"{method} {path}", "status": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Clerk {method} {path} failed: {str(e)}")
            raise UpstreamServiceError(
                "Identity provider is unreachable",
                details={"operation": f"{method} {path}"},
            ) from e

        if not response.content:
            return {}
        return response.json()

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(settings.clerk_max_retry_attempts),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _send_with_retry(self, method: str, path: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.api_url,
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.secret_key}"},
        ) as client:
            return await client.request(method, path, **kwargs)
