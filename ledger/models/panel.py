"""Provisioned panel owned by a user."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ledger.models.base import Base


class Panel(Base):
    """Panel record as returned by the provisioning service.

    Rows are keyed by (owner email, server id) with no foreign key to users:
    deleting a user leaves its panels in place.
    """

    __tablename__ = "panels"

    user_email: Mapped[str] = mapped_column(String(255), primary_key=True)
    server_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)  # provider passthrough
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
