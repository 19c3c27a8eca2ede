"""Upload and status-reconciliation coordinator.

Owns the recording collection the UI renders. Uploads a file with progress
reporting, inserts the returned recording, and then reconciles its status
either from a bridge event (push or app-internal completion) or by polling
the detail endpoint.

All public methods must be awaited on the event loop that owns the
coordinator. Errors are recorded in ``error`` for display and raised to the
caller, never into a global handler.

Usage::

    coordinator = RecordingCoordinator(api, store, history)
    coordinator.attach(bridge)
    recording = await coordinator.upload_recording(Path("meeting.m4a"), "Standup")
    await coordinator.watch_recording(recording.id)
"""

import asyncio
import logging
from pathlib import Path
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from src.core.config import get_settings
from src.core.exceptions import (
    APIError,
    EmptyAudioFileError,
    InvalidTitleError,
    RecordingNotFoundError,
    RecordSyncError,
    UnsupportedAudioFormatError,
)
from src.core.models import (
    AnalysisType,
    Recording,
    RecordingId,
    RecordingStatus,
    RecordingStatusChanged,
    RecordingSummary,
)
from src.services.analysis.history import AnalysisHistoryService
from src.services.notifications.bridge import BridgeEvent, NotificationBridge
from src.services.recordings.store import RecordingStore
from src.services.remote.base import BaseRecordingAPI, ProgressCallback
from src.services.storage.local_store import LocalStore

logger = logging.getLogger(__name__)

# Analysis types whose current version becomes available at each status.
_ANALYSIS_READY: dict[RecordingStatus, tuple[AnalysisType, ...]] = {
    RecordingStatus.transcribed: (AnalysisType.transcription,),
    RecordingStatus.completed: (AnalysisType.transcription, AnalysisType.summary),
}


class RecordingCoordinator:
    """Drives uploads and keeps the recording collection in sync.

    Args:
        api: Remote recording service.
        store: Shared recording collection.
        history: Analysis history service used to attach finished results.
        local_store: Optional offline snapshot of the recording list.
        settings: Optional Settings instance (defaults to get_settings()).
    """

    def __init__(
        self,
        api: BaseRecordingAPI,
        store: RecordingStore,
        history: AnalysisHistoryService,
        local_store: LocalStore | None = None,
        settings=None,
    ) -> None:
        self._api = api
        self._store = store
        self._history = history
        self._local = local_store
        self._settings = settings or get_settings()
        self._allowed_extensions = {
            ext.lower().lstrip(".") for ext in self._settings.allowed_audio_extensions
        }
        self._status_events: dict[RecordingId, asyncio.Event] = {}
        self._active_uploads = 0

        self.is_uploading = False
        self.upload_progress = 0.0
        self.is_loading = False
        self.error: str | None = None

    # ------------------------------------------------------------------
    # Read projections
    # ------------------------------------------------------------------

    @property
    def recordings(self) -> list[Recording]:
        return self._store.recordings

    @property
    def summaries(self) -> list[RecordingSummary]:
        return self._store.summaries

    def get_recording(self, recording_id: RecordingId) -> Recording | None:
        return self._store.get(recording_id)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload_recording(
        self,
        file_path: Path | str,
        title: str = "",
        prompt_template_id: int | None = None,
    ) -> Recording:
        """Validate and upload an audio file, then list it first.

        A blank title becomes the file name without extension.

        Raises:
            UnsupportedAudioFormatError: Extension outside the allow-list.
            EmptyAudioFileError: Missing or zero-byte file.
            APIError: Network or server failure.
        """
        path = Path(file_path)
        self.error = None
        # Progress is shared by overlapping uploads and restarts with the first.
        if self._active_uploads == 0:
            self.upload_progress = 0.0
        self._active_uploads += 1
        self.is_uploading = True
        try:
            await asyncio.to_thread(self._validate_upload, path)
            resolved_title = title.strip() or path.stem or self._settings.default_title
            recording = await self._api.upload_recording(
                path,
                resolved_title,
                on_progress=self._progress_callback(),
                prompt_template_id=prompt_template_id,
            )
        except RecordSyncError as exc:
            self.error = f"Upload failed: {exc.detail}"
            logger.warning("Upload of %s failed: %s", path.name, exc.detail)
            raise
        except OSError as exc:
            self.error = f"Upload failed: could not read {path.name}"
            logger.warning("Could not read %s for upload: %s", path, exc)
            raise RecordSyncError(self.error, code="FILE_READ_ERROR") from exc
        finally:
            self._active_uploads -= 1
            self.is_uploading = self._active_uploads > 0

        if not self.is_uploading:
            self.upload_progress = 1.0
        self._store.insert_head(recording)
        logger.info("Uploaded %s as %s (status=%s)", path.name, recording.id, recording.status)
        await self._cache_recording(recording)
        return recording

    def _validate_upload(self, path: Path) -> None:
        extension = path.suffix.lstrip(".").lower()
        if extension not in self._allowed_extensions:
            raise UnsupportedAudioFormatError(path.suffix.lstrip("."))
        if not path.is_file() or path.stat().st_size == 0:
            raise EmptyAudioFileError(str(path))

    def _progress_callback(self) -> ProgressCallback:
        """Return a thread-safe callback that marshals progress onto the loop."""
        loop = asyncio.get_running_loop()

        def _report(fraction: float) -> None:
            loop.call_soon_threadsafe(self._apply_progress, fraction)

        return _report

    def _apply_progress(self, fraction: float) -> None:
        if self._active_uploads == 0:
            return  # arrived after the upload resolved
        clamped = min(max(fraction, 0.0), 1.0)
        self.upload_progress = max(self.upload_progress, clamped)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_recordings_summary(self, limit: int | None = None) -> list[RecordingSummary]:
        """Replace the collection with the lightweight list projection."""
        summaries = await self._load_summaries(self._api.list_recording_summaries(limit=limit))
        logger.info("Loaded %d recording summaries", len(summaries))
        return summaries

    async def load_recent_recordings(self, limit: int | None = None) -> list[RecordingSummary]:
        """Like ``load_recordings_summary`` but limited server-side to the newest."""
        limit = limit or self._settings.recent_limit
        summaries = await self._load_summaries(self._api.list_recent_recordings(limit))
        logger.info("Loaded %d recent recordings (limit=%d)", len(summaries), limit)
        return summaries

    async def _load_summaries(self, fetch) -> list[RecordingSummary]:
        self.is_loading = True
        self.error = None
        try:
            summaries = await fetch
        except RecordSyncError as exc:
            self.error = f"Failed to load recordings: {exc.detail}"
            logger.warning("Loading recording list failed: %s", exc.detail)
            raise
        finally:
            self.is_loading = False
        self._store.replace_from_summaries(summaries)
        await self._cache_snapshot()
        return self._store.summaries

    async def load_recordings(self) -> list[Recording]:
        """Fetch every recording with content, falling back to the local snapshot.

        Raises:
            APIError: When the network fails and no snapshot exists.
        """
        self.is_loading = True
        self.error = None
        try:
            recordings = await self._api.list_recordings()
        except APIError as exc:
            logger.warning("Loading recordings failed: %s", exc.detail)
            cached = await self._load_cached()
            if not cached:
                self.error = f"Failed to load recordings: {exc.detail}"
                raise
            logger.info("Showing %d cached recordings", len(cached))
            self._store.replace_from_recordings(cached)
            self.error = "Cannot reach the server, showing cached recordings."
            return self._store.recordings
        finally:
            self.is_loading = False

        self._store.replace_from_recordings(recordings)
        await self._cache_snapshot()
        logger.info("Loaded %d recordings", len(recordings))
        return self._store.recordings

    async def fetch_recording(self, recording_id: RecordingId) -> Recording:
        """Fetch the full representation and refresh it if it is listed."""
        recording = await self._api.get_recording(recording_id)
        if self._store.upsert_detail(recording):
            await self._cache_recording(recording)
        return recording

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    async def delete_recording(self, recording: Recording | RecordingSummary | RecordingId) -> None:
        """Delete remotely, then locally. A rejected delete changes nothing."""
        recording_id = recording if isinstance(recording, UUID) else recording.id
        try:
            await self._api.delete_recording(recording_id)
        except RecordSyncError as exc:
            self.error = f"Delete failed: {exc.detail}"
            logger.warning("Delete of %s rejected: %s", recording_id, exc.detail)
            raise
        self._store.remove(recording_id)
        self._status_events.pop(recording_id, None)
        if self._local is not None:
            try:
                await self._local.forget_recording(recording_id)
            except SQLAlchemyError:
                logger.warning("Failed to drop %s from the local cache", recording_id)
        logger.info("Deleted recording %s", recording_id)

    async def update_recording_title(
        self,
        recording_id: RecordingId,
        new_title: str,
    ) -> Recording | None:
        """Rename remotely, then update the local title in place.

        Returns:
            The updated local recording, or None when it is not listed.

        Raises:
            InvalidTitleError: Blank title (no request is sent).
            APIError: Server rejected the rename; local state is unchanged.
        """
        title = new_title.strip()
        if not title:
            raise InvalidTitleError()
        await self._api.rename_recording(recording_id, title)
        if not self._store.set_title(recording_id, title):
            return None
        recording = self._store.get(recording_id)
        await self._cache_recording(recording)
        return recording

    # ------------------------------------------------------------------
    # Status reconciliation
    # ------------------------------------------------------------------

    def attach(self, bridge: NotificationBridge):
        """Subscribe to bridge events. Returns the unsubscribe callable."""
        return bridge.subscribe(self._on_bridge_event)

    async def _on_bridge_event(self, event: BridgeEvent) -> None:
        if isinstance(event, RecordingStatusChanged):
            await self.handle_status_update(event.recording_id, event.status)

    async def handle_status_update(self, recording_id: RecordingId | str, status: str) -> bool:
        """Apply an out-of-band status change.

        Unknown or malformed ids are ignored; the next full refresh reconciles
        them. Returns whether the update was applied.
        """
        try:
            rid = recording_id if isinstance(recording_id, UUID) else UUID(str(recording_id))
        except ValueError:
            logger.warning("Ignoring status update with invalid recording id %r", recording_id)
            return False

        if not self._store.set_status(rid, status):
            logger.info("Ignoring status update for unknown recording %s", rid)
            return False

        logger.info("Recording %s status -> %s", rid, status)
        await self._attach_analysis(rid, RecordingStatus.parse(status))
        event = self._status_events.get(rid)
        if event is not None:
            event.set()
        return True

    async def _attach_analysis(self, recording_id: RecordingId, status: RecordingStatus) -> None:
        for analysis_type in _ANALYSIS_READY.get(status, ()):
            try:
                await self._history.refresh_current(recording_id, analysis_type)
            except RecordSyncError as exc:
                logger.warning(
                    "Could not fetch %s for %s: %s",
                    analysis_type.value,
                    recording_id,
                    exc.detail,
                )

    async def watch_recording(self, recording_id: RecordingId) -> RecordingStatus:
        """Poll until the recording reaches a terminal status.

        A bridge update for the same recording wakes the wait early, and the
        loop stops as soon as the local status is terminal. When attempts run
        out the last known status is returned.

        Raises:
            RecordingNotFoundError: The recording is not (or no longer) listed.
        """
        event = self._status_events.setdefault(recording_id, asyncio.Event())

        async def _sleep(seconds: float) -> None:
            try:
                await asyncio.wait_for(event.wait(), timeout=seconds)
            except TimeoutError:
                pass
            event.clear()

        def _give_up(state: RetryCallState) -> RecordingStatus:
            local = self._store.get(recording_id)
            status = local.status_kind if local is not None else RecordingStatus.unknown
            logger.warning(
                "Stopped polling %s after %d attempts (status=%s)",
                recording_id,
                state.attempt_number,
                status.value,
            )
            return status

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.poll_max_attempts),
            wait=wait_fixed(self._settings.poll_interval),
            retry=(
                retry_if_result(lambda status: not status.is_terminal)
                | retry_if_exception_type(APIError)
            ),
            sleep=_sleep,
            retry_error_callback=_give_up,
        )
        try:
            return await retrying(self._poll_once, recording_id)
        finally:
            self._status_events.pop(recording_id, None)

    async def _poll_once(self, recording_id: RecordingId) -> RecordingStatus:
        local = self._store.get(recording_id)
        if local is None:
            raise RecordingNotFoundError(recording_id)
        if local.status_kind.is_terminal:
            return local.status_kind

        remote = await self._api.get_recording(recording_id)
        # A push may have landed while the request was in flight.
        local = self._store.get(recording_id)
        if local is None:
            raise RecordingNotFoundError(recording_id)
        if local.status_kind.is_terminal:
            return local.status_kind
        status = remote.status_kind
        if remote.status != local.status:
            logger.info("Polled %s: %s -> %s", recording_id, local.status, remote.status)
            self._store.upsert_detail(remote)
            await self._attach_analysis(recording_id, status)
        return status

    # ------------------------------------------------------------------
    # Local snapshot
    # ------------------------------------------------------------------

    async def _cache_snapshot(self) -> None:
        if self._local is None:
            return
        try:
            await self._local.save_snapshot(self._store.recordings)
        except SQLAlchemyError:
            logger.warning("Failed to cache the recording list (non-fatal)")

    async def _cache_recording(self, recording: Recording) -> None:
        if self._local is None:
            return
        try:
            await self._local.save_recording(recording)
        except SQLAlchemyError:
            logger.warning("Failed to cache recording %s (non-fatal)", recording.id)

    async def _load_cached(self) -> list[Recording]:
        if self._local is None:
            return []
        try:
            return await self._local.load_snapshot()
        except SQLAlchemyError:
            logger.warning("Failed to read the recording cache")
            return []
