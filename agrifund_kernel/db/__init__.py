"""Database layer for the AgriFund kernel."""

from agrifund_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from agrifund_kernel.db.engine import (
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "session_scope",
]
