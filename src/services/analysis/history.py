"""
Versioned analysis history for recordings.

Every transcription or summary run is one ``AnalysisHistory`` record. For a
(recording, analysis type) pair this service keeps:

* versions strictly increasing and never reused, including across refreshes,
* at most one record flagged current,
* terminal records (completed / failed) frozen after their single update.

"Set current" is remote-authoritative: local flags only move after the
server has acknowledged the change.
"""

import logging
from uuid import UUID

from src.core.exceptions import AnalysisNotFoundError, AnalysisVersionConflictError
from src.core.models import AnalysisHistory, AnalysisStatus, AnalysisType, RecordingId
from src.services.recordings.store import RecordingStore
from src.services.remote.base import BaseRecordingAPI

logger = logging.getLogger(__name__)

HistoryKey = tuple[RecordingId, AnalysisType]


class AnalysisHistoryService:
    """Loads, orders, and re-points analysis versions.

    Args:
        api: Remote recording service.
        store: Shared recording collection whose analysis flags and content
            follow the current versions.
    """

    def __init__(self, api: BaseRecordingAPI, store: RecordingStore) -> None:
        self._api = api
        self._store = store
        self._records: dict[HistoryKey, dict[UUID, AnalysisHistory]] = {}
        # Every (version -> record id) ever seen, so versions are never reused.
        self._versions: dict[HistoryKey, dict[int, UUID]] = {}
        # Keys whose full history came from the server at least once.
        self._loaded: set[HistoryKey] = set()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def cached_history(
        self,
        recording_id: RecordingId,
        analysis_type: AnalysisType,
    ) -> list[AnalysisHistory]:
        """Return loaded versions, newest first."""
        records = self._records.get((recording_id, analysis_type), {})
        return sorted(records.values(), key=lambda r: r.version, reverse=True)

    def current(
        self,
        recording_id: RecordingId,
        analysis_type: AnalysisType,
    ) -> AnalysisHistory | None:
        for record in self._records.get((recording_id, analysis_type), {}).values():
            if record.is_current:
                return record
        return None

    async def list_history(
        self,
        recording_id: RecordingId,
        analysis_type: AnalysisType,
    ) -> list[AnalysisHistory]:
        """Fetch every version from the server, newest first.

        The current entry is not necessarily the highest version; a user may
        have pinned an older one.

        Raises:
            AnalysisVersionConflictError: If two records share a version.
            APIError: On transport failures (cached history is kept).
        """
        items = await self._api.get_analysis_history(recording_id, analysis_type)
        self._ingest(recording_id, analysis_type, items)
        self._sync_recording(recording_id)
        return self.cached_history(recording_id, analysis_type)

    async def refresh_current(
        self,
        recording_id: RecordingId,
        analysis_type: AnalysisType,
    ) -> AnalysisHistory | None:
        """Reload history and return the current version, if any."""
        await self.list_history(recording_id, analysis_type)
        return self.current(recording_id, analysis_type)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def set_current(
        self,
        recording_id: RecordingId,
        analysis_type: AnalysisType,
        history_id: UUID,
    ) -> AnalysisHistory:
        """Make *history_id* the current version once the server confirms.

        Raises:
            AnalysisNotFoundError: If the version was never loaded.
            APIError: If the server rejects the change; local flags are untouched.
        """
        key = (recording_id, analysis_type)
        records = self._records.get(key, {})
        target = records.get(history_id)
        if target is None:
            raise AnalysisNotFoundError(history_id)
        if target.is_current:
            return target

        await self._api.set_current_analysis(recording_id, history_id)

        promoted = target.model_copy(update={"is_current": True})
        self._put_current(key, promoted)
        logger.info(
            "Version %d of %s is now current for recording %s",
            promoted.version,
            analysis_type.value,
            recording_id,
        )
        self._sync_recording(recording_id)
        return promoted

    async def regenerate(
        self,
        recording_id: RecordingId,
        analysis_type: AnalysisType,
        provider: str | None = None,
        prompt_template_id: int | None = None,
    ) -> AnalysisHistory:
        """Start a new analysis run and record its processing version."""
        record = await self._api.regenerate_analysis(
            recording_id,
            analysis_type,
            provider=provider,
            prompt_template_id=prompt_template_id,
        )
        self._insert_new(record)
        logger.info(
            "Started %s version %d for recording %s (provider=%s)",
            analysis_type.value,
            record.version,
            recording_id,
            record.provider or "default",
        )
        return record

    def apply_update(self, record: AnalysisHistory) -> AnalysisHistory:
        """Apply a pushed or polled record.

        A processing record moves to its terminal status exactly once; later
        updates to a terminal record are ignored. Unseen records are inserted
        under the usual version rule.
        """
        key = record.key
        existing = self._records.get(key, {}).get(record.id)
        if existing is None:
            self._insert_new(record)
            return record
        if existing.status.is_terminal:
            logger.debug("Ignoring update to terminal analysis %s", record.id)
            return existing
        if record.version != existing.version:
            logger.warning(
                "Analysis %s changed version %d -> %d; ignoring",
                record.id,
                existing.version,
                record.version,
            )
            return existing

        if record.is_current:
            self._put_current(key, record)
        else:
            self._records[key][record.id] = record
        if record.status is AnalysisStatus.failed:
            logger.warning(
                "%s version %d for recording %s failed: %s",
                record.analysis_type.value,
                record.version,
                record.recording_id,
                record.error_message,
            )
        self._sync_recording(record.recording_id)
        return record

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ingest(
        self,
        recording_id: RecordingId,
        analysis_type: AnalysisType,
        items: list[AnalysisHistory],
    ) -> None:
        key = (recording_id, analysis_type)
        matching = [i for i in items if i.key == key]
        if len(matching) != len(items):
            logger.warning(
                "Dropped %d history records not belonging to %s/%s",
                len(items) - len(matching),
                recording_id,
                analysis_type.value,
            )

        known = self._versions.setdefault(key, {})
        seen: dict[int, UUID] = {}
        for item in matching:
            owner = seen.get(item.version, known.get(item.version))
            if owner is not None and owner != item.id:
                raise AnalysisVersionConflictError(recording_id, analysis_type.value, item.version)
            seen[item.version] = item.id

        currents = [i for i in matching if i.is_current]
        if len(currents) > 1:
            keep = max(currents, key=lambda i: i.version)
            logger.warning(
                "Server flagged %d current %s versions for %s; keeping version %d",
                len(currents),
                analysis_type.value,
                recording_id,
                keep.version,
            )
            matching = [
                i
                if not i.is_current or i.id == keep.id
                else i.model_copy(update={"is_current": False})
                for i in matching
            ]

        self._records[key] = {i.id: i for i in matching}
        known.update(seen)
        self._loaded.add(key)

    def _insert_new(self, record: AnalysisHistory) -> None:
        key = record.key
        known = self._versions.setdefault(key, {})
        if record.version <= max(known, default=0):
            raise AnalysisVersionConflictError(
                record.recording_id, record.analysis_type.value, record.version
            )
        self._records.setdefault(key, {})
        known[record.version] = record.id
        if record.is_current:
            self._put_current(key, record)
            self._sync_recording(record.recording_id)
        else:
            self._records[key][record.id] = record

    def _put_current(self, key: HistoryKey, record: AnalysisHistory) -> None:
        """Store *record* as current and clear the flag on its predecessor."""
        records = self._records.setdefault(key, {})
        for other in list(records.values()):
            if other.is_current and other.id != record.id:
                records[other.id] = other.model_copy(update={"is_current": False})
        records[record.id] = record

    def _sync_recording(self, recording_id: RecordingId) -> None:
        """Push current-version content and flags into the recording store.

        Only histories loaded in full from the server are synced.
        """
        flags: dict = {}
        for analysis_type, flag, field in (
            (AnalysisType.transcription, "has_transcript", "transcription"),
            (AnalysisType.summary, "has_summary", "summary_text"),
        ):
            if (recording_id, analysis_type) not in self._loaded:
                continue
            current = self.current(recording_id, analysis_type)
            ready = current is not None and current.status is AnalysisStatus.completed
            flags[flag] = ready
            flags[field] = current.content if ready else None
        if flags:
            self._store.set_analysis(recording_id, **flags)
