"""
In-memory recording collection shared by the coordinator and history service.

Holds both read projections keyed by the same UUID: full ``Recording``
objects and, where the list endpoint supplied them, ``RecordingSummary``
objects. Either projection can be derived from the other, so callers never
need both to be present. Not thread-safe: every mutation happens on the
event loop that owns the services.
"""

import logging

from src.core.models import Recording, RecordingId, RecordingSummary

logger = logging.getLogger(__name__)


class RecordingStore:
    """Ordered (newest first) collection of recordings."""

    def __init__(self) -> None:
        self._order: list[RecordingId] = []
        self._details: dict[RecordingId, Recording] = {}
        self._summaries: dict[RecordingId, RecordingSummary] = {}

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, recording_id: object) -> bool:
        return recording_id in self._details

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    @property
    def recordings(self) -> list[Recording]:
        return [self._details[rid] for rid in self._order]

    @property
    def summaries(self) -> list[RecordingSummary]:
        return [self.get_summary(rid) for rid in self._order]

    def get(self, recording_id: RecordingId) -> Recording | None:
        return self._details.get(recording_id)

    def get_summary(self, recording_id: RecordingId) -> RecordingSummary | None:
        summary = self._summaries.get(recording_id)
        if summary is not None:
            return summary
        detail = self._details.get(recording_id)
        return detail.to_summary() if detail is not None else None

    # ------------------------------------------------------------------
    # Wholesale replacement
    # ------------------------------------------------------------------

    def replace_from_summaries(self, summaries: list[RecordingSummary]) -> None:
        """Replace the collection with a fresh list-endpoint response.

        Details already fetched for a listed id keep their content but take
        the list's title and status, which are newer.
        """
        ordered = sorted(summaries, key=lambda s: s.created_at, reverse=True)
        details: dict[RecordingId, Recording] = {}
        for summary in ordered:
            existing = self._details.get(summary.id)
            if existing is None:
                details[summary.id] = summary.to_recording()
            else:
                details[summary.id] = existing.model_copy(
                    update={
                        "title": summary.title,
                        "status": summary.status,
                        "duration": summary.duration,
                        "file_size": summary.file_size,
                    }
                )
        self._order = [s.id for s in ordered]
        self._details = details
        self._summaries = {s.id: s for s in ordered}

    def replace_from_recordings(self, recordings: list[Recording]) -> None:
        """Replace the collection with full records (summaries are derived)."""
        ordered = sorted(recordings, key=lambda r: r.created_at, reverse=True)
        self._order = [r.id for r in ordered]
        self._details = {r.id: r for r in ordered}
        self._summaries = {}

    # ------------------------------------------------------------------
    # Single-entry mutations
    # ------------------------------------------------------------------

    def insert_head(self, recording: Recording) -> None:
        """Put *recording* first, replacing any entry with the same id."""
        if recording.id in self._details:
            self._order.remove(recording.id)
        self._order.insert(0, recording.id)
        self._details[recording.id] = recording
        self._summaries.pop(recording.id, None)

    def upsert_detail(self, recording: Recording) -> bool:
        """Replace the detail of a listed recording; unknown ids are ignored.

        A terminal local status is never replaced by a non-terminal one.
        """
        existing = self._details.get(recording.id)
        if existing is None:
            return False
        if existing.status_kind.is_terminal and not recording.status_kind.is_terminal:
            recording = recording.model_copy(update={"status": existing.status})
        self._details[recording.id] = recording
        summary = self._summaries.get(recording.id)
        if summary is not None:
            self._summaries[recording.id] = summary.model_copy(
                update={"title": recording.title, "status": recording.status}
            )
        return True

    def remove(self, recording_id: RecordingId) -> bool:
        if recording_id not in self._details:
            return False
        self._order.remove(recording_id)
        del self._details[recording_id]
        self._summaries.pop(recording_id, None)
        return True

    def set_status(self, recording_id: RecordingId, status: str) -> bool:
        detail = self._details.get(recording_id)
        if detail is None:
            return False
        detail.status = status
        summary = self._summaries.get(recording_id)
        if summary is not None:
            self._summaries[recording_id] = summary.model_copy(update={"status": status})
        return True

    def set_title(self, recording_id: RecordingId, title: str) -> bool:
        detail = self._details.get(recording_id)
        if detail is None:
            return False
        detail.title = title
        summary = self._summaries.get(recording_id)
        if summary is not None:
            self._summaries[recording_id] = summary.model_copy(update={"title": title})
        return True

    def set_analysis(
        self,
        recording_id: RecordingId,
        has_transcript: bool | None = None,
        has_summary: bool | None = None,
        transcription: str | None = None,
        summary_text: str | None = None,
    ) -> bool:
        """Attach current analysis content and refresh the derived flags.

        ``None`` leaves the corresponding field as it is.
        """
        detail = self._details.get(recording_id)
        if detail is None:
            return False
        if has_transcript is not None:
            detail.transcription = transcription if has_transcript else None
        if has_summary is not None:
            detail.summary = summary_text if has_summary else None

        current = self.get_summary(recording_id)
        update: dict = {}
        if has_transcript is not None:
            update["has_transcript"] = has_transcript
        if has_summary is not None:
            update["has_summary"] = has_summary
        self._summaries[recording_id] = current.model_copy(update=update)
        logger.debug(
            "Analysis flags for %s: transcript=%s summary=%s",
            recording_id,
            self._summaries[recording_id].has_transcript,
            self._summaries[recording_id].has_summary,
        )
        return True
