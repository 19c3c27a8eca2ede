"""
Data-access layer for the local cache tables.

``CacheRepository`` receives an ``AsyncSession`` and calls ``flush()``
rather than ``commit()`` so that transaction boundaries are controlled by
the caller (typically :func:`get_session`).
"""

import logging

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.models import Recording, RecordingId
from src.services.storage.models_db import CachedRecording, KeyValueEntry

logger = logging.getLogger(__name__)


class CacheRepository:
    """CRUD for key-value rows and the recording snapshot.

    Args:
        session: An active SQLAlchemy ``AsyncSession``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Key-value
    # ------------------------------------------------------------------

    async def get_value(self, key: str) -> str | None:
        entry = await self._session.get(KeyValueEntry, key)
        return entry.value if entry is not None else None

    async def set_value(self, key: str, value: str) -> None:
        entry = await self._session.get(KeyValueEntry, key)
        if entry is None:
            self._session.add(KeyValueEntry(key=key, value=value))
        else:
            entry.value = value
        await self._session.flush()

    async def delete_value(self, key: str) -> bool:
        """Remove *key*; returns False when it was not stored."""
        entry = await self._session.get(KeyValueEntry, key)
        if entry is None:
            return False
        await self._session.delete(entry)
        await self._session.flush()
        return True

    # ------------------------------------------------------------------
    # Recording snapshot
    # ------------------------------------------------------------------

    async def replace_recordings(self, recordings: list[Recording]) -> None:
        """Drop the previous snapshot and store *recordings* in its place."""
        await self._session.execute(delete(CachedRecording))
        for recording in recordings:
            self._session.add(self._to_row(recording))
        await self._session.flush()

    async def upsert_recording(self, recording: Recording) -> None:
        row = await self._session.get(CachedRecording, str(recording.id))
        if row is None:
            self._session.add(self._to_row(recording))
        else:
            row.payload = recording.model_dump(mode="json")
            row.created_at = recording.created_at
        await self._session.flush()

    async def delete_recording(self, recording_id: RecordingId) -> None:
        await self._session.execute(
            delete(CachedRecording).where(CachedRecording.id == str(recording_id))
        )
        await self._session.flush()

    async def list_recordings(self) -> list[Recording]:
        """Return the snapshot newest first; undecodable rows are skipped."""
        stmt = select(CachedRecording).order_by(CachedRecording.created_at.desc())
        result = await self._session.execute(stmt)
        recordings: list[Recording] = []
        for row in result.scalars().all():
            try:
                recordings.append(Recording.model_validate(row.payload))
            except PydanticValidationError:
                logger.warning("Skipping unreadable cached recording %s", row.id)
        return recordings

    @staticmethod
    def _to_row(recording: Recording) -> CachedRecording:
        return CachedRecording(
            id=str(recording.id),
            payload=recording.model_dump(mode="json"),
            created_at=recording.created_at,
        )
