"""Push device-token delivery with deferred, bounded retry.

A device token usually arrives at launch, before the user has signed in.
``register_token`` starts a background loop that waits for a stored access
token (``device_token_retry_interval`` seconds between checks, at most
``device_token_max_attempts`` checks) and then posts the token once. When no
session ever shows up the loop ends ``exhausted`` but keeps the token, so
``send_if_available`` can deliver it after login.

State machine::

    idle -> registering -> delivered
                        -> failed      (server rejected or unreachable)
                        -> exhausted   (no session within the bounded loop)
"""

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from src.core.config import get_settings
from src.core.exceptions import APIError, AuthenticationRequiredError, ValidationError
from src.core.models import DeliveryState, DeviceRegistration
from src.services.remote.base import BaseRecordingAPI
from src.services.storage.local_store import DEVICE_TOKEN_KEY, LocalStore
from src.services.storage.session import BaseSessionProvider

logger = logging.getLogger(__name__)


class DeviceTokenRetrier:
    """Delivers the push device token once a user session exists.

    Args:
        api: Remote recording service.
        session: Stored session used to gate and authenticate delivery.
        local_store: Optional cache for the token across launches.
        settings: Optional Settings instance (defaults to get_settings()).
    """

    def __init__(
        self,
        api: BaseRecordingAPI,
        session: BaseSessionProvider,
        local_store: LocalStore | None = None,
        settings=None,
    ) -> None:
        self._api = api
        self._session = session
        self._local = local_store
        settings = settings or get_settings()
        self._max_attempts = settings.device_token_max_attempts
        self._retry_interval = settings.device_token_retry_interval
        self._platform = settings.device_platform

        self._registration = DeviceRegistration()
        self._delivered_token: str | None = None
        self._session_available = asyncio.Event()
        self._task: asyncio.Task | None = None
        self.attempts = 0

    @property
    def registration(self) -> DeviceRegistration:
        return self._registration.model_copy()

    @property
    def token(self) -> str | None:
        return self._registration.token

    @property
    def state(self) -> DeliveryState:
        return self._registration.state

    def set_authorized(self, granted: bool) -> None:
        """Record the OS notification permission result."""
        self._registration.authorized = granted

    async def restore(self) -> str | None:
        """Reload the token cached by a previous launch."""
        if self._local is None:
            return None
        try:
            token = await self._local.get_value(DEVICE_TOKEN_KEY)
        except SQLAlchemyError:
            logger.warning("Failed to read the cached device token")
            return None
        if token:
            self._registration.token = token
            logger.debug("Restored cached device token")
        return token

    async def register_token(self, token: str | bytes) -> asyncio.Task:
        """Store a new token from the OS and start the delivery loop.

        Raw bytes are hex-encoded. Any loop still waiting for a session is
        replaced; it would have sent the same latest token anyway.
        """
        value = token.hex() if isinstance(token, (bytes, bytearray)) else token.strip()
        if not value:
            raise ValidationError("Device token must not be empty", code="INVALID_DEVICE_TOKEN")

        self._registration.token = value
        logger.info("Received device token (%d chars)", len(value))
        await self._persist_token(value)

        self.cancel()
        self._registration.state = DeliveryState.registering
        self.attempts = 0
        self._task = asyncio.create_task(self._deliver_with_retry())
        return self._task

    def notify_session_available(self) -> None:
        """Wake a waiting delivery loop immediately (e.g. right after login)."""
        self._session_available.set()

    async def send_if_available(self) -> bool:
        """Send the latest token once, outside the bounded loop.

        Returns:
            True when the server accepted the token.
        """
        token = self._registration.token
        if not token:
            logger.info("No device token available to send")
            return False
        self.notify_session_available()
        access_token = await self._session.access_token()
        if not access_token:
            logger.warning("Cannot send device token: no signed-in user")
            return False
        return await self._send(token, access_token)

    def cancel(self) -> None:
        """Stop a pending delivery loop, if any."""
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def aclose(self) -> None:
        """Cancel and wait for the delivery loop (called during shutdown)."""
        task = self._task
        self.cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _deliver_with_retry(self) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_fixed(self._retry_interval),
            retry=retry_if_exception_type(AuthenticationRequiredError),
            sleep=self._wait_for_session,
            reraise=True,
        )
        try:
            await retrying(self._attempt_delivery)
        except AuthenticationRequiredError:
            self._registration.state = DeliveryState.exhausted
            logger.warning(
                "Device token not sent after %d attempts without a session; "
                "kept for a later send",
                self.attempts,
            )
        except asyncio.CancelledError:
            # A replaced loop must not reset the state of its successor.
            superseded = self._task is not asyncio.current_task()
            if not superseded and self._registration.state is DeliveryState.registering:
                self._registration.state = DeliveryState.idle
            raise

    async def _attempt_delivery(self) -> bool:
        self.attempts += 1
        self._session_available.clear()
        token = self._registration.token
        if token is not None and token == self._delivered_token:
            self._registration.state = DeliveryState.delivered
            return True

        access_token = await self._session.access_token()
        if not access_token:
            logger.info(
                "No signed-in user yet (attempt %d/%d)",
                self.attempts,
                self._max_attempts,
            )
            raise AuthenticationRequiredError()
        return await self._send(token, access_token)

    async def _wait_for_session(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._session_available.wait(), timeout=seconds)
        except TimeoutError:
            pass

    async def _send(self, token: str, access_token: str) -> bool:
        try:
            await self._api.register_device_token(token, self._platform, access_token)
        except APIError as exc:
            self._registration.state = DeliveryState.failed
            logger.error("Device token registration failed: %s", exc.detail)
            return False
        self._delivered_token = token
        self._registration.state = DeliveryState.delivered
        logger.info("Device token registered for platform %s", self._platform)
        return True

    async def _persist_token(self, token: str) -> None:
        if self._local is None:
            return
        try:
            await self._local.set_value(DEVICE_TOKEN_KEY, token)
        except SQLAlchemyError:
            logger.warning("Failed to cache the device token (non-fatal)")
