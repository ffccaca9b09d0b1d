"""Database layer - engine, base classes, and types."""

from scheduling_kernel.db.base import UUID, AwareDateTime, Base, UUIDString
from scheduling_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "Base",
    "UUIDString",
    "AwareDateTime",
    "UUID",
]
