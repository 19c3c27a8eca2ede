"""Integration test fixtures for RecordSync.

Wires the real services from ``create_services`` to an in-process fake
recording service over ``httpx.ASGITransport`` and an in-memory SQLite
cache.
"""

import pytest
from httpx import ASGITransport

from src.app import create_services
from src.core.models import StoredUser
from src.services.storage import database
from tests.integration.fake_backend import FakeBackend


@pytest.fixture
def backend():
    """Create a fresh fake recording service."""
    return FakeBackend()


@pytest.fixture
async def services(backend, db_engine, settings):
    """Process services talking to the fake backend.

    Injects the test engine into the database module so the local store
    uses the same in-memory SQLite with tables already created.
    """
    database._engine = db_engine
    database._session_factory = None
    services = await create_services(settings, transport=ASGITransport(app=backend.app))
    yield services
    await services.aclose()
    database.reset_engine()


@pytest.fixture
async def signed_in(services):
    """Store a logged-in user so authenticated calls carry a bearer token."""
    await services.session.save_user(
        StoredUser(id="u-1", username="ana", email="ana@example.com", access_token="jwt-test")
    )
    return services
