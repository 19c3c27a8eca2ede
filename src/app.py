"""
Service composition root.

``create_services()`` builds exactly one instance of each long-lived service
for the process and wires the notification bridge to the coordinator. The
presentation layer holds the returned ``AppServices`` for the application
lifetime and calls ``aclose()`` on shutdown.
"""

import logging
from dataclasses import dataclass

import httpx

from src.core.config import Settings, get_settings
from src.services.analysis.history import AnalysisHistoryService
from src.services.notifications.bridge import NotificationBridge
from src.services.notifications.device_token import DeviceTokenRetrier
from src.services.recordings.coordinator import RecordingCoordinator
from src.services.recordings.store import RecordingStore
from src.services.remote import create_recording_api
from src.services.remote.base import BaseRecordingAPI
from src.services.storage import (
    CachedSessionProvider,
    LocalStore,
    close_db,
    get_engine,
    get_session_factory,
    init_db,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Apply the configured log level to the root logger."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@dataclass
class AppServices:
    """Process-wide service instances."""

    settings: Settings
    local_store: LocalStore
    session: CachedSessionProvider
    api: BaseRecordingAPI
    store: RecordingStore
    history: AnalysisHistoryService
    coordinator: RecordingCoordinator
    bridge: NotificationBridge
    device_tokens: DeviceTokenRetrier

    async def aclose(self) -> None:
        """Stop background work and release network and database resources."""
        await self.device_tokens.aclose()
        aclose = getattr(self.api, "aclose", None)
        if aclose is not None:
            await aclose()
        await close_db()
        logger.info("Services shut down")


async def create_services(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AppServices:
    """Build and wire every service.

    Args:
        settings: Optional Settings instance (defaults to get_settings()).
        transport: Optional httpx transport for the API client (tests).
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    engine = get_engine(settings.database_url)
    await init_db(engine)
    local_store = LocalStore(get_session_factory(engine))
    session = CachedSessionProvider(local_store)

    api = create_recording_api(session=session, settings=settings, transport=transport)
    store = RecordingStore()
    history = AnalysisHistoryService(api, store)
    coordinator = RecordingCoordinator(
        api, store, history, local_store=local_store, settings=settings
    )
    bridge = NotificationBridge()
    coordinator.attach(bridge)

    device_tokens = DeviceTokenRetrier(api, session, local_store=local_store, settings=settings)
    await device_tokens.restore()

    logger.info("Services ready (api=%s)", settings.api_base_url)
    return AppServices(
        settings=settings,
        local_store=local_store,
        session=session,
        api=api,
        store=store,
        history=history,
        coordinator=coordinator,
        bridge=bridge,
        device_tokens=device_tokens,
    )
