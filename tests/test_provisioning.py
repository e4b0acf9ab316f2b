"""Tests for the provisioning HTTP client."""
import json

import httpx
import pytest

from ledger.errors import ProvisioningError
from ledger.services.provisioning import ProvisioningClient


@pytest.mark.asyncio
async def test_requests_carry_fixed_headers(provisioning, backend):
    """Every call targets the base URL with JSON content type and the fixed Origin."""
    await provisioning.create_panel(1024, "srv1", "pw")
    await provisioning.delete_panel(7, 100)
    await provisioning.health_check()

    paths = [r.url.path for r in backend.requests]
    assert paths == [
        "/api/panelHandler/create-panel",
        "/api/panelHandler/delete-panel",
        "/api/panelHandler/health",
    ]
    for request in backend.requests:
        assert request.headers["Origin"] == "https://reseller.test"
        assert request.headers["Content-Type"] == "application/json"
    assert json.loads(backend.requests[0].content) == {"ram": 1024, "username": "srv1", "password": "pw"}


@pytest.mark.asyncio
async def test_create_error_status_raises(provisioning, backend):
    backend.create_status = 500
    with pytest.raises(ProvisioningError, match="500"):
        await provisioning.create_panel(1024, "srv1", "pw")


@pytest.mark.asyncio
async def test_create_without_server_id_raises(provisioning, backend):
    backend.omit_server_id = True
    with pytest.raises(ProvisioningError, match="serverId"):
        await provisioning.create_panel(1024, "srv1", "pw")


@pytest.mark.asyncio
async def test_health_timeout_raises(provisioning, backend):
    backend.health_timeout = True
    with pytest.raises(ProvisioningError):
        await provisioning.health_check()


@pytest.mark.asyncio
async def test_non_json_response_raises():
    """A 2xx answer that is not JSON is a provisioning failure."""
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>oops</html>"))
    client = ProvisioningClient("https://provisioning.test", "https://reseller.test", transport=transport)
    try:
        with pytest.raises(ProvisioningError, match="invalid JSON"):
            await client.delete_panel(1, 2)
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_connection_error_raises():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = ProvisioningClient(
        "https://provisioning.test", "https://reseller.test", transport=httpx.MockTransport(refuse)
    )
    try:
        with pytest.raises(ProvisioningError, match="connection refused"):
            await client.create_panel(1024, "srv1", "pw")
    finally:
        await client.close()
