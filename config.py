"""Configuration for the panel ledger API."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _parse_timeout(value: str) -> float | None:
    """Seconds as float; empty or non-numeric means no timeout."""
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'ledger.db'}",
)

# Panel provisioning backend
PROVISIONING_BASE_URL = os.getenv(
    "PROVISIONING_BASE_URL", "https://api-yudzxml.koyeb.app/api/panelHandler"
)
PROVISIONING_ORIGIN = os.getenv("PROVISIONING_ORIGIN", "https://resellerpanelku.x-server.web.id")
PROVISIONING_TIMEOUT = _parse_timeout(os.getenv("PROVISIONING_TIMEOUT", ""))
HEALTH_TIMEOUT = _parse_timeout(os.getenv("HEALTH_TIMEOUT", "10")) or 10.0

# Ledger
PANEL_PRICE = int(os.getenv("PANEL_PRICE", "3000"))

# Web server
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
