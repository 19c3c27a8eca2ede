"""Async facade over the local cache used by the long-lived services."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.models import Recording, RecordingId
from src.services.storage.database import get_session
from src.services.storage.repository import CacheRepository

logger = logging.getLogger(__name__)

SAVED_USER_KEY = "saved_user"
DEVICE_TOKEN_KEY = "device_token"


class LocalStore:
    """Opens one short transaction per call on the given session factory.

    Args:
        session_factory: Factory bound to the cache database engine.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = session_factory

    async def get_value(self, key: str) -> str | None:
        async with get_session(self._factory) as session:
            return await CacheRepository(session).get_value(key)

    async def set_value(self, key: str, value: str) -> None:
        async with get_session(self._factory) as session:
            await CacheRepository(session).set_value(key, value)

    async def delete_value(self, key: str) -> None:
        async with get_session(self._factory) as session:
            await CacheRepository(session).delete_value(key)

    async def save_snapshot(self, recordings: list[Recording]) -> None:
        async with get_session(self._factory) as session:
            await CacheRepository(session).replace_recordings(recordings)
        logger.debug("Cached %d recordings", len(recordings))

    async def save_recording(self, recording: Recording) -> None:
        async with get_session(self._factory) as session:
            await CacheRepository(session).upsert_recording(recording)

    async def forget_recording(self, recording_id: RecordingId) -> None:
        async with get_session(self._factory) as session:
            await CacheRepository(session).delete_recording(recording_id)

    async def load_snapshot(self) -> list[Recording]:
        async with get_session(self._factory) as session:
            return await CacheRepository(session).list_recordings()
