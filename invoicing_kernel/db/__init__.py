"""Database layer - engine, base classes and money helpers."""

from invoicing_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from invoicing_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session_factory,
    session_scope,
)
from invoicing_kernel.db.types import ZERO, round_money, to_decimal

__all__ = [
    "get_engine",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "ZERO",
    "round_money",
    "to_decimal",
]
