"""Database models."""
from ledger.models.base import Base, create_engine, create_session_factory, init_db
from ledger.models.panel import Panel
from ledger.models.user import ROLE_ADMIN, ROLE_USER, ROLES, User

__all__ = [
    "Base",
    "Panel",
    "User",
    "ROLE_ADMIN",
    "ROLE_USER",
    "ROLES",
    "create_engine",
    "create_session_factory",
    "init_db",
]
