"""
Pydantic v2 models for recordings, analysis versions, and notification events.

Recording:  RecordingSummary (list projection), Recording (detail projection)
Analysis:   AnalysisHistory, one versioned transcription/summary attempt
Device:     StoredUser, DeviceRegistration
Events:     RecordingStatusChanged, NavigateToRecording (bridge output)
"""

import logging
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)

# Both projections of a recording share this identity type.
RecordingId = UUID


class _WireEnum(StrEnum):
    """StrEnum decoded case-insensitively with an ``unknown`` fallback."""

    @classmethod
    def _missing_(cls, value: object):
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        logger.warning("Unrecognized %s value from server: %r", cls.__name__, value)
        return cls("unknown")


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


class RecordingStatus(_WireEnum):
    """Processing states reported by the server for a recording."""

    pending = "pending"
    uploading = "uploading"
    processing = "processing"
    transcribing = "transcribing"
    transcribed = "transcribed"
    summarizing = "summarizing"
    completed = "completed"
    failed = "failed"
    unknown = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> "RecordingStatus":
        """Decode a raw status string; ``None`` maps to ``unknown``."""
        if raw is None:
            return cls.unknown
        return cls(raw)

    @property
    def is_terminal(self) -> bool:
        return self in (RecordingStatus.completed, RecordingStatus.failed)

    def for_display(self) -> "RecordingStatus":
        """Unrecognized states are shown as pending."""
        return RecordingStatus.pending if self is RecordingStatus.unknown else self


class RecordingSummary(BaseModel):
    """Lightweight list-view projection returned by the summary endpoints."""

    model_config = ConfigDict(frozen=True)

    id: RecordingId
    title: str
    duration: float | None = None
    file_size: int | None = None
    status: str | None = None
    created_at: datetime
    has_transcript: bool = False
    has_summary: bool = False

    @property
    def status_kind(self) -> RecordingStatus:
        return RecordingStatus.parse(self.status)

    def to_recording(self) -> "Recording":
        """Build a content-less detail projection for list screens."""
        return Recording(
            id=self.id,
            title=self.title,
            duration=self.duration,
            file_size=self.file_size,
            status=self.status,
            created_at=self.created_at,
        )


class Recording(BaseModel):
    """Full detail projection of a recording.

    ``status`` is stored verbatim; use ``status_kind`` for decisions.
    """

    id: RecordingId
    title: str
    original_filename: str = ""
    format: str = ""
    mime_type: str = ""
    duration: float | None = None
    created_at: datetime
    transcription: str | None = None
    summary: str | None = None
    file_size: int | None = None
    status: str | None = None
    timeline_transcript: str | None = None
    has_timeline: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def status_kind(self) -> RecordingStatus:
        return RecordingStatus.parse(self.status)

    @property
    def display_status(self) -> RecordingStatus:
        return self.status_kind.for_display()

    def to_summary(
        self,
        has_transcript: bool | None = None,
        has_summary: bool | None = None,
    ) -> RecordingSummary:
        """Project to the list view; flags default to content presence."""
        return RecordingSummary(
            id=self.id,
            title=self.title,
            duration=self.duration,
            file_size=self.file_size,
            status=self.status,
            created_at=self.created_at,
            has_transcript=bool(self.transcription) if has_transcript is None else has_transcript,
            has_summary=bool(self.summary) if has_summary is None else has_summary,
        )


# ---------------------------------------------------------------------------
# Analysis history
# ---------------------------------------------------------------------------


class AnalysisType(_WireEnum):
    """Kind of analysis produced for a recording."""

    transcription = "transcription"
    summary = "summary"
    unknown = "unknown"


class AnalysisStatus(_WireEnum):
    """Lifecycle of one analysis run."""

    processing = "processing"
    completed = "completed"
    failed = "failed"
    unknown = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (AnalysisStatus.completed, AnalysisStatus.failed)


class AnalysisHistory(BaseModel):
    """One versioned analysis attempt for a (recording, analysis type) pair."""

    id: UUID
    recording_id: RecordingId
    analysis_type: AnalysisType
    content: str = ""
    status: AnalysisStatus
    provider: str = ""
    version: int = Field(ge=1)
    is_current: bool = False
    error_message: str | None = None
    language: str = "unknown"
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    processing_time: float | None = None
    prompt_template_id: int | None = None
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _check_terminal_content(self) -> "AnalysisHistory":
        if self.status is AnalysisStatus.failed:
            if self.content:
                raise ValueError("failed analysis must not carry content")
            if not self.error_message:
                raise ValueError("failed analysis requires an error_message")
        elif self.status is AnalysisStatus.completed and not self.content:
            raise ValueError("completed analysis requires content")
        return self

    @property
    def key(self) -> tuple[RecordingId, AnalysisType]:
        return (self.recording_id, self.analysis_type)


# ---------------------------------------------------------------------------
# Session / device registration
# ---------------------------------------------------------------------------


class StoredUser(BaseModel):
    """Cached authenticated user blob (written by the login flow)."""

    id: str
    username: str
    email: str = ""
    access_token: str | None = None


class DeliveryState(StrEnum):
    """Device-token delivery state machine."""

    idle = "idle"
    registering = "registering"
    delivered = "delivered"
    failed = "failed"
    exhausted = "exhausted"


class DeviceRegistration(BaseModel):
    """Process-local snapshot of the push registration."""

    token: str | None = None
    authorized: bool = False
    state: DeliveryState = DeliveryState.idle


# ---------------------------------------------------------------------------
# Notification payloads and events
# ---------------------------------------------------------------------------


class RemoteCompletionPayload(BaseModel):
    """Push payload announcing that server-side processing finished."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str
    recording_id: str = Field(alias="recordingId", min_length=1)
    status: str = Field(min_length=1)


class NotificationTapPayload(BaseModel):
    """User info attached to a tapped local notification."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    recording_id: str = Field(alias="recordingId", min_length=1)


class RecordingStatusChanged(BaseModel):
    """Bridge event: a recording reached a new processing status."""

    model_config = ConfigDict(frozen=True)

    recording_id: str
    status: str


class NavigateToRecording(BaseModel):
    """Bridge event: the user asked to open a recording."""

    model_config = ConfigDict(frozen=True)

    recording_id: str
