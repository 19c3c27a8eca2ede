"""
Notification bridge.

Translates three independent sources into typed events:

* remote push payloads (``type == "recording_completed"``),
* taps on local notifications (carry ``recordingId``),
* the app-internal "processing completed" signal.

Subscribers receive ``RecordingStatusChanged`` or ``NavigateToRecording``
and never see raw payloads. Delivery is best-effort: malformed payloads are
dropped, and a failing subscriber does not stop the others. Polling in the
coordinator stays the authoritative fallback when pushes are lost.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from src.core.models import (
    NavigateToRecording,
    NotificationTapPayload,
    RecordingStatusChanged,
    RemoteCompletionPayload,
)

logger = logging.getLogger(__name__)

RECORDING_COMPLETED = "recording_completed"

BridgeEvent = RecordingStatusChanged | NavigateToRecording
EventHandler = Callable[[BridgeEvent], Awaitable[None]]


class NotificationBridge:
    """Publishes typed notification events to async subscribers."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register *handler*; the returned callable unsubscribes it."""
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    async def publish(self, event: BridgeEvent) -> None:
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "Notification handler failed for %s (non-fatal)", type(event).__name__
                )

    async def handle_remote_payload(self, payload: Mapping[str, Any]) -> bool:
        """Translate a push payload. Returns False when it was dropped."""
        if not isinstance(payload, Mapping) or payload.get("type") != RECORDING_COMPLETED:
            logger.debug("Dropping push payload of unsupported type")
            return False
        try:
            parsed = RemoteCompletionPayload.model_validate(payload)
        except PydanticValidationError:
            logger.debug("Dropping malformed %s payload", RECORDING_COMPLETED)
            return False
        event = RecordingStatusChanged(recording_id=parsed.recording_id, status=parsed.status)
        await self.publish(event)
        return True

    async def handle_notification_tap(self, payload: Mapping[str, Any]) -> bool:
        """Translate a tapped local notification into a navigation event."""
        if not isinstance(payload, Mapping):
            return False
        try:
            parsed = NotificationTapPayload.model_validate(payload)
        except PydanticValidationError:
            logger.debug("Dropping notification tap without a recording id")
            return False
        await self.publish(NavigateToRecording(recording_id=parsed.recording_id))
        return True

    async def post_completion(self, recording_id: str, status: str) -> None:
        """Publish an app-internal completion signal."""
        await self.publish(RecordingStatusChanged(recording_id=str(recording_id), status=status))
