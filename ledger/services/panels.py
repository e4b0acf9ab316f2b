"""Panel lifecycle: paid creation with refund on failure, owner-checked deletion, bulk purge."""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Callable, Optional

import config
from ledger.errors import (
    Conflict,
    Expired,
    InsufficientBalance,
    InvalidInput,
    NotFound,
    PartialDeletionError,
    StoreError,
)
from ledger.models import ROLE_ADMIN
from ledger.services.provisioning import ProvisioningClient
from ledger.services.users import utcnow
from ledger.store import DocumentStore

logger = logging.getLogger("ledger.panels")

# Upper bound of deletions per commit in delete_all_panels
DELETE_BATCH_SIZE = 500

UNHEALTHY = {"active": False, "maintenance": True}


def coerce_number(value: Any) -> int | float:
    """Numeric value of an id sent as number or string. Raises InvalidInput otherwise."""
    if isinstance(value, bool):
        raise InvalidInput("userId and serverId must be numbers")
    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            raise InvalidInput("userId and serverId must be numbers") from None
    if isinstance(number, float):
        if math.isnan(number) or math.isinf(number):
            raise InvalidInput("userId and serverId must be numbers")
        if number.is_integer():
            return int(number)
    return number


class PanelService:
    def __init__(
        self,
        store: DocumentStore,
        provisioning: ProvisioningClient,
        *,
        price: int = config.PANEL_PRICE,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.provisioning = provisioning
        self.price = price
        self._clock = clock

    async def _refund(self, email: str, amount: int) -> None:
        """Best-effort compensation; a failed refund is logged, never raised."""
        try:
            await self.store.refund_balance(email, amount)
            logger.info("Refunded %d to %s", amount, email)
        except Exception:
            logger.exception("Refund of %d to %s failed", amount, email)

    async def create_panel(self, email: str, username: str, password: str, ram: Any) -> dict:
        """Charge the user, provision the panel and record it.

        The balance is deducted before the provisioning call and refunded if
        any later step fails. Admins are not charged.
        """
        user = await self.store.get_user(email)
        if user is None:
            raise NotFound("Email is not registered")

        expire_at = user["expireAt"]
        if expire_at is not None and expire_at < self._clock():
            raise Expired("Account has expired")

        deducted = 0
        if user["role"] != ROLE_ADMIN:
            balance = user["money"] or 0
            if balance < self.price:
                raise InsufficientBalance(required=self.price, current=balance)
            if not await self.store.deduct_balance(email, self.price):
                # balance changed since it was read
                current = await self.store.get_user(email)
                raise InsufficientBalance(
                    required=self.price, current=(current or {}).get("money") or 0
                )
            deducted = self.price

        try:
            if await self.store.list_panels(email, username=username):
                raise Conflict("A panel with this username already exists")
            record = await self.provisioning.create_panel(ram, username, password)
            await self.store.create_panel(email, record, username=username)
        except Exception:
            if deducted:
                await self._refund(email, deducted)
            raise

        logger.info("Panel %s created for %s", record["serverId"], email)
        return record

    async def _find_owned_panel(self, email: str, user_id: int | float, server_id: int | float) -> Optional[dict]:
        """The panel if email owns server_id and its stored userId matches, else None."""
        if await self.store.get_user(email) is None:
            logger.info("Owner lookup: no user %s", email)
            return None
        panel = await self.store.get_panel(email, server_id)
        if panel is None:
            logger.info("Owner lookup: no panel %s under %s", server_id, email)
            return None
        try:
            stored_user_id = coerce_number(panel.get("userId"))
        except InvalidInput:
            stored_user_id = None
        if stored_user_id != user_id:
            logger.info(
                "Owner lookup: userId mismatch for panel %s (stored %s, given %s)",
                server_id, panel.get("userId"), user_id,
            )
            return None
        return panel

    async def delete_panel(self, email: str, user_id: Any, server_id: Any) -> None:
        """Deprovision remotely, then drop the local record.

        Missing user, missing panel and foreign panel all raise the same NotFound.
        """
        uid = coerce_number(user_id)
        sid = coerce_number(server_id)
        if await self._find_owned_panel(email, uid, sid) is None:
            raise NotFound("Panel not found or does not match")
        await self.provisioning.delete_panel(uid, sid)
        await self.store.delete_panel(email, sid)
        logger.info("Panel %s deleted for %s", sid, email)

    async def delete_all_panels(self) -> int:
        """Delete every panel of every user, DELETE_BATCH_SIZE per commit.

        Not atomic across batches. A failing batch raises PartialDeletionError
        carrying the number of panels already deleted.
        """
        deleted = 0
        users = await self.store.list_users()
        if not users:
            logger.info("No users to process")
            return 0
        for user in users:
            email = user["email"]
            keys = await self.store.list_panel_keys(email)
            for start in range(0, len(keys), DELETE_BATCH_SIZE):
                batch = keys[start:start + DELETE_BATCH_SIZE]
                try:
                    await self.store.delete_panels(email, batch)
                except StoreError as e:
                    logger.error("Bulk delete stopped at %s after %d panels", email, deleted)
                    raise PartialDeletionError(
                        f"Bulk panel deletion stopped after {deleted} panels: {e.message}", deleted
                    ) from e
                deleted += len(batch)
        logger.info("All panels deleted. Total: %d", deleted)
        return deleted

    async def list_current_panels(self, email: str) -> list[dict]:
        return await self.store.list_panels(email)

    async def health(self) -> dict:
        """Upstream health, degraded to inactive/maintenance on any failure."""
        try:
            return await self.provisioning.health_check()
        except Exception as e:
            logger.warning("Health check failed: %s", e)
            return dict(UNHEALTHY)
