"""Document store adapter: user documents and their panel collections.

Users are addressed by email, panels by (owner email, server id). Reads hand
back plain dicts in the shape the API returns. Creation timestamps come from
the database clock. Any SQLAlchemy failure is re-raised as StoreError; nothing
is retried.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Iterable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledger.errors import StoreError
from ledger.models import Panel, User

logger = logging.getLogger("ledger.store")

# Writable user fields, API name -> column attribute
_USER_FIELDS = {
    "password_hash": "password_hash",
    "role": "role",
    "money": "money",
    "expireAt": "expire_at",
}

# Panel fields usable in collection scans
_PANEL_FILTERS = {
    "username": Panel.username,
}


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (SQLite drops offsets) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def panel_key(server_id: Any) -> str:
    """Document key for a server id: integral numbers lose any trailing '.0'."""
    if isinstance(server_id, float) and server_id.is_integer():
        return str(int(server_id))
    return str(server_id)


def _user_to_dict(user: User) -> dict:
    return {
        "email": user.email,
        "role": user.role,
        "money": user.money,
        "expireAt": as_utc(user.expire_at),
        "createdAt": as_utc(user.created_at),
    }


def _panel_to_dict(panel: Panel) -> dict:
    return {
        "id": panel.server_id,
        **(panel.data or {}),
        "createdAt": as_utc(panel.created_at),
    }


class DocumentStore:
    """Async CRUD over users and panels. One session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("Store operation failed: %s", e)
            raise StoreError(f"Store operation failed: {e}") from e

    # -------------------------- users --------------------------
    async def get_user(self, email: str) -> Optional[dict]:
        async with self._session() as session:
            user = await session.get(User, email)
            return _user_to_dict(user) if user else None

    async def create_user(
        self,
        email: str,
        *,
        password_hash: str,
        role: str,
        money: int,
        expire_at: datetime,
    ) -> dict:
        async with self._session() as session:
            user = User(
                email=email,
                password_hash=password_hash,
                role=role,
                money=money,
                expire_at=as_utc(expire_at),
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return _user_to_dict(user)

    async def update_user(self, email: str, fields: dict[str, Any]) -> bool:
        """Merge the given fields into the user. Returns False if the user is absent.

        `money` here is an absolute value; see deduct_balance for the delta path.
        """
        values = {}
        for name, value in fields.items():
            if name not in _USER_FIELDS:
                raise ValueError(f"Unknown user field: {name}")
            if name == "expireAt":
                value = as_utc(value)
            values[_USER_FIELDS[name]] = value
        if not values:
            return await self.get_user(email) is not None
        async with self._session() as session:
            result = await session.execute(update(User).where(User.email == email).values(**values))
            await session.commit()
            return result.rowcount > 0

    async def delete_user(self, email: str) -> bool:
        async with self._session() as session:
            result = await session.execute(delete(User).where(User.email == email))
            await session.commit()
            return result.rowcount > 0

    async def list_users(self) -> list[dict]:
        async with self._session() as session:
            result = await session.execute(select(User).order_by(User.email))
            return [_user_to_dict(u) for u in result.scalars().all()]

    async def deduct_balance(self, email: str, amount: int) -> bool:
        """Subtract amount only while the balance still covers it. Returns whether it applied."""
        async with self._session() as session:
            result = await session.execute(
                update(User)
                .where(User.email == email, User.money >= amount)
                .values(money=User.money - amount)
            )
            await session.commit()
            return result.rowcount > 0

    async def refund_balance(self, email: str, amount: int) -> bool:
        async with self._session() as session:
            result = await session.execute(
                update(User).where(User.email == email).values(money=User.money + amount)
            )
            await session.commit()
            return result.rowcount > 0

    # -------------------------- panels --------------------------
    async def get_panel(self, email: str, server_id: Any) -> Optional[dict]:
        async with self._session() as session:
            panel = await session.get(Panel, (email, panel_key(server_id)))
            return _panel_to_dict(panel) if panel else None

    async def list_panels(self, email: str, **filters: Any) -> list[dict]:
        """Scan one user's panels, optionally filtered by field equality."""
        stmt = select(Panel).where(Panel.user_email == email)
        for name, value in filters.items():
            column = _PANEL_FILTERS.get(name)
            if column is None:
                raise ValueError(f"Unsupported panel filter: {name}")
            stmt = stmt.where(column == value)
        stmt = stmt.order_by(Panel.created_at, Panel.server_id)
        async with self._session() as session:
            result = await session.execute(stmt)
            return [_panel_to_dict(p) for p in result.scalars().all()]

    async def list_panel_keys(self, email: str) -> list[str]:
        async with self._session() as session:
            result = await session.execute(
                select(Panel.server_id).where(Panel.user_email == email).order_by(Panel.server_id)
            )
            return list(result.scalars().all())

    async def create_panel(self, email: str, record: dict[str, Any], username: Optional[str] = None) -> dict:
        """Persist a provider record under the user, keyed by its serverId."""
        async with self._session() as session:
            panel = Panel(
                user_email=email,
                server_id=panel_key(record["serverId"]),
                username=str(record.get("username") or username or ""),
                data=dict(record),
            )
            session.add(panel)
            await session.commit()
            await session.refresh(panel)
            return _panel_to_dict(panel)

    async def delete_panel(self, email: str, server_id: Any) -> bool:
        async with self._session() as session:
            result = await session.execute(
                delete(Panel).where(Panel.user_email == email, Panel.server_id == panel_key(server_id))
            )
            await session.commit()
            return result.rowcount > 0

    async def delete_panels(self, email: str, server_ids: Iterable[Any]) -> int:
        """Delete several of one user's panels in a single commit."""
        keys = [panel_key(s) for s in server_ids]
        if not keys:
            return 0
        async with self._session() as session:
            result = await session.execute(
                delete(Panel).where(Panel.user_email == email, Panel.server_id.in_(keys))
            )
            await session.commit()
            return result.rowcount
