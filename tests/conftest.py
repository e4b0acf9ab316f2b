"""Pytest configuration and fixtures for ledger and API tests."""
from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from ledger.models import create_engine, create_session_factory, init_db
from ledger.services.panels import PanelService
from ledger.services.provisioning import ProvisioningClient
from ledger.services.users import UserLedgerService
from ledger.store import DocumentStore
from web.api.main import create_app
from web.api.routes import Services

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
PROVISIONING_URL = "https://provisioning.test/api/panelHandler"
ORIGIN = "https://reseller.test"


class Clock:
    """Settable clock injected into the services."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeProvisioning:
    """In-memory provisioning backend served through httpx.MockTransport."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.panels: dict[int, dict] = {}
        self.next_server_id = 100
        self.user_id = 7
        self.create_status = 200
        self.omit_server_id = False
        self.delete_status = 200
        self.health_payload = {"active": True, "maintenance": False}
        self.health_status = 200
        self.health_timeout = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path.rsplit("/", 1)[-1]
        if endpoint == "create-panel":
            if self.create_status != 200:
                return httpx.Response(self.create_status, json={"error": "create failed"})
            body = json.loads(request.content)
            record = {"username": body["username"], "ram": body["ram"], "userId": self.user_id}
            if not self.omit_server_id:
                record["serverId"] = self.next_server_id
                self.panels[self.next_server_id] = record
                self.next_server_id += 1
            return httpx.Response(200, json=record)
        if endpoint == "delete-panel":
            if self.delete_status != 200:
                return httpx.Response(self.delete_status, json={"error": "delete failed"})
            body = json.loads(request.content)
            self.panels.pop(body["serverId"], None)
            return httpx.Response(200, json={"success": True})
        if endpoint == "health":
            if self.health_timeout:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(self.health_status, json=self.health_payload)
        return httpx.Response(404, json={"error": "unknown endpoint"})

    def calls(self, endpoint: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/" + endpoint)]


@pytest.fixture
async def session_factory(tmp_path):
    """Session factory over a fresh SQLite file per test."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return DocumentStore(session_factory)


@pytest.fixture
def backend():
    return FakeProvisioning()


@pytest.fixture
async def provisioning(backend):
    client = ProvisioningClient(
        PROVISIONING_URL,
        ORIGIN,
        transport=httpx.MockTransport(backend.handler),
    )
    yield client
    await client.close()


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture
def users(store, clock):
    return UserLedgerService(store, clock=clock)


@pytest.fixture
def panels(store, provisioning, clock):
    return PanelService(store, provisioning, price=3000, clock=clock)


@pytest.fixture
async def client(users, panels):
    """Async HTTP client against an app wired with the test services."""
    app = create_app(Services(users=users, panels=panels))
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
