"""Error taxonomy shared by the store, the services and the action router.

Every error carries the HTTP status the router answers with and renders its
own JSON body.
"""
from __future__ import annotations


class LedgerError(Exception):
    """Base class for failures that map to an API response."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict:
        return {"error": self.message}


class InvalidInput(LedgerError):
    status_code = 400


class InsufficientBalance(LedgerError):
    status_code = 402

    def __init__(self, required: int, current: int):
        super().__init__("Insufficient balance to create a panel")
        self.required = required
        self.current = current

    def to_body(self) -> dict:
        return {"error": self.message, "required": self.required, "current": self.current}


class Expired(LedgerError):
    status_code = 403


class PermissionDenied(LedgerError):
    status_code = 403


class NotFound(LedgerError):
    status_code = 404


class MethodNotAllowed(LedgerError):
    status_code = 405


class Conflict(LedgerError):
    status_code = 409


class ProvisioningError(LedgerError):
    """The provisioning backend failed or answered with an unusable payload."""


class StoreError(LedgerError):
    """The document store rejected a read or write."""


class PartialDeletionError(StoreError):
    """A bulk deletion stopped partway; deleted_count panels are already gone."""

    def __init__(self, message: str, deleted_count: int):
        super().__init__(message)
        self.deleted_count = deleted_count

    def to_body(self) -> dict:
        return {"error": self.message, "deletedCount": self.deleted_count}
