"""FastAPI app for the panel reseller API."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from ledger.models import create_engine, create_session_factory, init_db
from ledger.services.panels import PanelService
from ledger.services.provisioning import ProvisioningClient
from ledger.services.users import UserLedgerService
from ledger.store import DocumentStore
from web.api.routes import Services, router

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("ledger.api")


def build_services(store: DocumentStore, provisioning: ProvisioningClient) -> Services:
    return Services(
        users=UserLedgerService(store),
        panels=PanelService(store, provisioning),
    )


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the app. Without injected services, the lifespan wires them from config."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services is not None:
            yield
            return
        engine = create_engine()
        await init_db(engine)
        provisioning = ProvisioningClient()
        app.state.services = build_services(DocumentStore(create_session_factory(engine)), provisioning)
        logger.info("Services ready (provisioning: %s)", config.PROVISIONING_BASE_URL)
        try:
            yield
        finally:
            await provisioning.close()
            await engine.dispose()

    app = FastAPI(title="Panel Ledger API", lifespan=lifespan)
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
