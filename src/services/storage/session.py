"""
Read access to the signed-in user.

The login flow owns writing the cached user blob; this core only needs
"current user, or none" and the user's bearer token.
"""

import logging
from abc import ABC, abstractmethod

from pydantic import ValidationError as PydanticValidationError

from src.core.models import StoredUser
from src.services.storage.local_store import SAVED_USER_KEY, LocalStore

logger = logging.getLogger(__name__)


class BaseSessionProvider(ABC):
    """Interface for the stored authentication session."""

    @abstractmethod
    async def current_user(self) -> StoredUser | None:
        """Return the cached user, or None when nobody is signed in."""

    async def access_token(self) -> str | None:
        """Return a non-empty bearer token, or None."""
        user = await self.current_user()
        if user is None or not user.access_token:
            return None
        return user.access_token


class CachedSessionProvider(BaseSessionProvider):
    """Session backed by the ``saved_user`` key-value row."""

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    async def current_user(self) -> StoredUser | None:
        raw = await self._store.get_value(SAVED_USER_KEY)
        if not raw:
            return None
        try:
            return StoredUser.model_validate_json(raw)
        except PydanticValidationError:
            logger.warning("Cached user blob is unreadable; treating as signed out")
            return None

    async def save_user(self, user: StoredUser) -> None:
        await self._store.set_value(SAVED_USER_KEY, user.model_dump_json())

    async def clear(self) -> None:
        await self._store.delete_value(SAVED_USER_KEY)
