"""Shared pytest fixtures for the RecordSync test suite.

Provides test settings, a mocked remote API, the shared recording store
and services built on it, an in-memory cache database, and sample audio
files.
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.core.config import Settings
from src.services.analysis.history import AnalysisHistoryService
from src.services.recordings.coordinator import RecordingCoordinator
from src.services.recordings.store import RecordingStore
from src.services.remote.base import BaseRecordingAPI
from src.services.storage.database import init_db
from src.services.storage.local_store import LocalStore

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def settings():
    """Settings with no .env and near-zero waits so retry loops run fast."""
    return Settings(
        _env_file=None,
        api_base_url="http://test/api",
        poll_interval=0.0,
        poll_max_attempts=4,
        device_token_retry_interval=0.01,
        device_token_max_attempts=5,
        upload_chunk_size=256,
        database_url="sqlite+aiosqlite://",
    )


# ---------------------------------------------------------------------------
# Remote API
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_api():
    """Create a mock remote API for unit testing.

    Returns:
        AsyncMock: A mock implementing the BaseRecordingAPI interface.
    """
    return AsyncMock(spec=BaseRecordingAPI)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def history(mock_api, store):
    return AnalysisHistoryService(mock_api, store)


@pytest.fixture
def coordinator(mock_api, store, history, settings):
    return RecordingCoordinator(mock_api, store, history, settings=settings)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def local_store(db_engine):
    return LocalStore(async_sessionmaker(db_engine, expire_on_commit=False))


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------


@pytest.fixture
def audio_file(tmp_path):
    """A non-empty file with an allowed audio extension.

    Returns:
        Path: ``meeting.m4a`` inside the test's temporary directory.
    """
    path = tmp_path / "meeting.m4a"
    path.write_bytes(b"\x00\x01" * 1024)
    return path
