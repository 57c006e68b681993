"""Async client for the subset of the Omneo API this tool manages.

The client is built once per run and shared by every concurrent call; it
holds no per-request state, so no locking is required.

Usage:
    async with OmneoClient.from_config(config) as client:
        hooks = await client.list_webhooks("my-namespace")
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import APP_NAMESPACE, DEFAULT_TIMEOUT_SECONDS, Config

logger = logging.getLogger(__name__)


class OmneoAPIError(Exception):
    """Raised when the Omneo API answers with an error status."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.status_code}: {self.message}"


class OmneoClient:
    """Async client for webhook registrations and tenant custom fields.

    Attributes:
        base_url: Base URL of the Omneo API
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Base URL of the Omneo API
            token: Bearer token
            timeout: Transport-level timeout in seconds
            transport: Optional transport, used by tests to serve a fake API
        """
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls, config: Config, transport: httpx.AsyncBaseTransport | None = None
    ) -> OmneoClient:
        logger.info(
            "Creating Omneo client",
            extra={"api_url": config.api_url, "token": config.redacted_token},
        )
        return cls(
            base_url=config.api_url,
            token=config.api_token,
            timeout=config.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> OmneoClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._token}",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make an API request and return the decoded JSON body.

        Raises:
            OmneoAPIError: If the API answers with a 4xx/5xx status, or with
                a success status whose body is not JSON.
            httpx.HTTPError: On transport failures.
        """
        response = await self._client.request(
            method=method,
            url=path,
            headers=self._headers(),
            json=json,
            params=params,
        )

        if response.status_code >= 400:
            details: Any = None
            try:
                details = response.json()
                message = details.get("message") or response.text
            except (ValueError, AttributeError):
                message = response.text
            raise OmneoAPIError(
                message=message or response.reason_phrase,
                status_code=response.status_code,
                details=details,
            )

        if response.status_code == 204 or not response.content:
            return {}

        # Gateways and proxies can answer 2xx with an HTML page
        try:
            return response.json()
        except ValueError as e:
            raise OmneoAPIError(
                "Response was not valid JSON",
                status_code=response.status_code,
                details=response.text[:200],
            ) from e

    @staticmethod
    def _unwrap_list(payload: Any) -> list[Any]:
        data = payload.get("data", []) if isinstance(payload, dict) else payload
        if not isinstance(data, list):
            raise OmneoAPIError("List response did not contain a 'data' array", details=payload)
        return data

    # Webhooks
    async def list_webhooks(self, namespace: str) -> list[Any]:
        """List webhook registrations in a namespace."""
        payload = await self._request("GET", "/webhooks", params={"filter[namespace]": namespace})
        return self._unwrap_list(payload)

    async def create_webhook(self, trigger: str, url: str, namespace: str) -> Any:
        return await self._request(
            "POST",
            "/webhooks",
            json={"trigger": trigger, "url": url, "namespace": namespace},
        )

    async def update_webhook(self, webhook_id: str, url: str) -> Any:
        return await self._request("PUT", f"/webhooks/{webhook_id}", json={"url": url})

    # Custom fields
    async def list_custom_fields(self, namespace: str = APP_NAMESPACE) -> list[Any]:
        """List tenant custom fields in a namespace."""
        payload = await self._request(
            "GET", "/tenants/custom-fields", params={"filter[namespace]": namespace}
        )
        return self._unwrap_list(payload)

    async def create_custom_field(self, body: dict[str, Any]) -> Any:
        return await self._request("POST", "/tenants/custom-fields", json=body)

    async def update_custom_field(self, namespace: str, handle: str, body: dict[str, Any]) -> Any:
        return await self._request(
            "PUT", f"/tenants/custom-fields/{namespace}:{handle}", json=body
        )
