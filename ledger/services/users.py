"""Account lifecycle: create/update, lookup, deletion, roles and admin checks."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ledger.errors import InvalidInput, NotFound, PermissionDenied
from ledger.models import ROLE_ADMIN, ROLE_USER, ROLES
from ledger.security import hash_password
from ledger.store import DocumentStore

logger = logging.getLogger("ledger.users")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate_role(role: str) -> str:
    if role not in ROLES:
        raise InvalidInput(f"Invalid role: {role} (expected one of {', '.join(ROLES)})")
    return role


class UserLedgerService:
    """Owns the per-user money balance and expiry timestamp."""

    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self._clock = clock

    async def add_or_update_user(
        self,
        email: str,
        password: Optional[str] = None,
        active_days: Optional[float] = None,
        role: Optional[str] = None,
        money: Optional[int] = None,
    ) -> dict:
        """Create the user on first sight, otherwise merge the supplied fields.

        New users need a password and a positive active_days. For existing
        users, active_days extends from max(current expiry, now) and never
        shortens it; password, role and money replace the stored values.
        Money is an absolute balance here, not a delta.
        """
        if not email:
            raise InvalidInput("Email is required")
        if role:
            _validate_role(role)
        now = self._clock()
        user = await self.store.get_user(email)

        if user is None:
            if not password:
                raise InvalidInput("Password is required for a new user")
            if not active_days or active_days <= 0:
                raise InvalidInput("activeDays must be greater than 0 for a new user")
            expire_at = now + timedelta(days=active_days)
            created = await self.store.create_user(
                email,
                password_hash=hash_password(password),
                role=role or ROLE_USER,
                money=money or 0,
                expire_at=expire_at,
            )
            logger.info("User added: %s (expires %s)", email, expire_at.isoformat())
            return {
                "email": email,
                "expireAt": created["expireAt"],
                "role": created["role"],
                "money": created["money"],
                "action": "added",
            }

        current_expire = user["expireAt"]
        updates: dict = {}
        if password:
            updates["password_hash"] = hash_password(password)
        if role:
            updates["role"] = role
        if money is not None:
            updates["money"] = money
        if active_days and active_days > 0:
            base = max(current_expire, now) if current_expire else now
            updates["expireAt"] = base + timedelta(days=active_days)

        if not updates:
            return {
                "email": email,
                "expireAt": current_expire,
                "role": user["role"],
                "money": user["money"],
                "action": "unchanged",
            }

        await self.store.update_user(email, updates)
        logger.info("User updated: %s (%s)", email, ", ".join(sorted(updates)))
        return {
            "email": email,
            "expireAt": updates.get("expireAt", current_expire),
            "role": updates.get("role", user["role"]),
            "money": updates.get("money", user["money"]),
            "action": "updated",
        }

    async def get_user(self, email: str) -> dict:
        """Full profile with the user's panels embedded."""
        user = await self.store.get_user(email)
        if user is None:
            raise NotFound("User not found")
        user["role"] = user["role"] or ROLE_USER
        user["money"] = user["money"] or 0
        user["panels"] = await self.store.list_panels(email)
        return user

    async def delete_user(self, email: str) -> dict:
        """Delete the user document only; its panels are left in place."""
        logger.info("Deleting user: %s", email)
        if await self.store.get_user(email) is None:
            raise NotFound("User not found")
        await self.store.delete_user(email)
        logger.info("User deleted: %s", email)
        return {"email": email}

    async def list_all_emails(self, admin_email: str) -> list[str]:
        await self.check_admin(admin_email)
        return [u["email"] for u in await self.store.list_users() if u["email"]]

    async def update_role(self, email: str, role: str) -> dict:
        logger.info("Changing role: %s -> %s", email, role)
        _validate_role(role)
        if await self.store.get_user(email) is None:
            raise NotFound("User not found")
        await self.store.update_user(email, {"role": role})
        return {"email": email, "role": role}

    async def check_admin(self, email: str) -> bool:
        """Guard for admin-only operations."""
        user = await self.store.get_user(email)
        if user is None:
            raise NotFound("User not found")
        if user["role"] != ROLE_ADMIN:
            raise PermissionDenied("Access denied: user is not an admin")
        return True
