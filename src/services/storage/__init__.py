"""
Storage module - Local cache database and session access.
"""

from src.services.storage.database import (
    Base,
    close_db,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
    reset_engine,
)
from src.services.storage.local_store import DEVICE_TOKEN_KEY, SAVED_USER_KEY, LocalStore
from src.services.storage.models_db import CachedRecording, KeyValueEntry
from src.services.storage.repository import CacheRepository
from src.services.storage.session import BaseSessionProvider, CachedSessionProvider

__all__ = [
    "DEVICE_TOKEN_KEY",
    "SAVED_USER_KEY",
    "Base",
    "BaseSessionProvider",
    "CacheRepository",
    "CachedRecording",
    "CachedSessionProvider",
    "KeyValueEntry",
    "LocalStore",
    "close_db",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    "reset_engine",
]
