"""Core application utilities."""

from .config import Settings, get_settings
from .database import (
    close_db,
    create_engine,
    create_session_factory,
    get_session_context,
    init_db,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "create_engine",
    "create_session_factory",
    "get_session_context",
    "init_db",
    "close_db",
]
