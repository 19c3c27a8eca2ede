"""
SQLAlchemy ORM models for the local cache.

Tables: ``kv_entries`` (cached user blob, device token),
``cached_recordings`` (offline snapshot of the recording list).
"""

from datetime import UTC, datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from src.services.storage.database import Base


class KeyValueEntry(Base):
    """A single string value stored under a string key."""

    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, default="")
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        return f"<KeyValueEntry key={self.key!r}>"


class CachedRecording(Base):
    """Last known full representation of a recording, stored as JSON."""

    __tablename__ = "cached_recordings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(index=True)
    cached_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))

    def __repr__(self) -> str:
        return f"<CachedRecording id={self.id}>"
