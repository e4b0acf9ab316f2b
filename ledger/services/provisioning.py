"""HTTP client for the external panel provisioning backend."""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

import config
from ledger.errors import ProvisioningError

logger = logging.getLogger("ledger.provisioning")


class ProvisioningClient:
    """Async wrapper over the provisioning API (create, delete, health).

    Every request goes to the same base URL with a JSON content type and a
    fixed Origin header.
    """

    def __init__(
        self,
        base_url: str = config.PROVISIONING_BASE_URL,
        origin: str = config.PROVISIONING_ORIGIN,
        *,
        timeout: Optional[float] = config.PROVISIONING_TIMEOUT,
        health_timeout: float = config.HEALTH_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._health_timeout = health_timeout
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Content-Type": "application/json", "Origin": origin},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request(self, method: str, path: str, action: str, **kwargs: Any) -> Any:
        try:
            r = await self._client.request(method, path, **kwargs)
            r.raise_for_status()
            return r.json()
        except httpx.HTTPStatusError as e:
            logger.error("%s: provisioning answered %s", action, e.response.status_code)
            raise ProvisioningError(
                f"{action}: provisioning API returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error("%s: %s", action, e)
            raise ProvisioningError(f"{action}: {str(e) or type(e).__name__}") from e
        except ValueError as e:
            raise ProvisioningError(f"{action}: invalid JSON from provisioning API") from e

    async def create_panel(self, ram: Any, username: str, password: str) -> dict:
        """Create a panel. Returns the provider record, which always carries a serverId."""
        logger.info("Creating panel: username=%s ram=%s", username, ram)
        data = await self._request(
            "POST",
            "/create-panel",
            "Failed to create panel",
            json={"ram": ram, "username": username, "password": password},
        )
        if not isinstance(data, dict) or not data.get("serverId"):
            raise ProvisioningError("Provisioning API did not return a serverId")
        logger.info("Panel created: serverId=%s", data["serverId"])
        return data

    async def delete_panel(self, user_id: int | float, server_id: int | float) -> Any:
        logger.info("Deleting panel: userId=%s serverId=%s", user_id, server_id)
        return await self._request(
            "POST",
            "/delete-panel",
            "Failed to delete panel",
            json={"userId": user_id, "serverId": server_id},
        )

    async def health_check(self) -> dict:
        """Probe the backend with a fixed timeout. Raises ProvisioningError on any failure."""
        data = await self._request(
            "GET", "/health", "Health check failed", timeout=self._health_timeout
        )
        if not isinstance(data, dict):
            raise ProvisioningError("Health check failed: unexpected payload")
        return {"active": data.get("active"), "maintenance": data.get("maintenance")}
