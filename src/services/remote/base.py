"""
Abstract base class for the remote recording service.

The coordinator, history service, and device-token retrier only depend on
this interface, so tests and alternative transports can swap the HTTP
implementation out.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from uuid import UUID

from src.core.models import AnalysisHistory, AnalysisType, Recording, RecordingSummary

ProgressCallback = Callable[[float], None]


class BaseRecordingAPI(ABC):
    """Interface that every remote recording backend must implement.

    All methods raise ``APIError`` on transport or HTTP failures.
    """

    @abstractmethod
    async def upload_recording(
        self,
        file_path: Path,
        title: str,
        on_progress: ProgressCallback | None = None,
        prompt_template_id: int | None = None,
    ) -> Recording:
        """Upload an audio file and return the created recording.

        Args:
            file_path: Local audio file to send.
            title: Display title (already defaulted by the caller).
            on_progress: Called with the sent fraction in [0, 1]. May be
                invoked from any thread.
            prompt_template_id: Optional summary prompt template.

        Returns:
            The server's full representation, normally in "processing".
        """

    @abstractmethod
    async def list_recording_summaries(self, limit: int | None = None) -> list[RecordingSummary]:
        """Return the lightweight list projection, newest first."""

    @abstractmethod
    async def list_recent_recordings(self, limit: int) -> list[RecordingSummary]:
        """Return at most *limit* most recent recordings (summary projection)."""

    @abstractmethod
    async def list_recordings(self) -> list[Recording]:
        """Return every recording with full content."""

    @abstractmethod
    async def get_recording(self, recording_id: UUID) -> Recording:
        """Return the full representation of one recording."""

    @abstractmethod
    async def rename_recording(self, recording_id: UUID, title: str) -> None:
        """Change a recording's title."""

    @abstractmethod
    async def delete_recording(self, recording_id: UUID) -> None:
        """Remove a recording on the server."""

    @abstractmethod
    async def get_analysis_history(
        self,
        recording_id: UUID,
        analysis_type: AnalysisType,
    ) -> list[AnalysisHistory]:
        """Return every analysis version for a recording and type."""

    @abstractmethod
    async def set_current_analysis(self, recording_id: UUID, history_id: UUID) -> None:
        """Mark one analysis version as current; returns after acknowledgement."""

    @abstractmethod
    async def regenerate_analysis(
        self,
        recording_id: UUID,
        analysis_type: AnalysisType,
        provider: str | None = None,
        prompt_template_id: int | None = None,
    ) -> AnalysisHistory:
        """Start a new analysis run and return its processing record."""

    @abstractmethod
    async def register_device_token(
        self,
        device_token: str,
        platform: str,
        access_token: str,
    ) -> None:
        """Register a push device token for the authenticated user."""
