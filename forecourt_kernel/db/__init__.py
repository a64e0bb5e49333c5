"""Database layer - engine, base classes, types, and immutability guards."""

from forecourt_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from forecourt_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from forecourt_kernel.db.types import Money, ShortCode, round_money

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "ShortCode",
    "round_money",
]
