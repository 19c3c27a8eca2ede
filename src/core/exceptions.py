"""
RecordSync exception hierarchy.

All application-specific exceptions inherit from RecordSyncError so the
presentation layer can pick a per-screen message from ``detail`` without
catching unrelated errors.
"""

from datetime import UTC, datetime


class RecordSyncError(Exception):
    """Base exception for all RecordSync errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "RECORDSYNC_ERROR",
    ) -> None:
        self.detail = detail
        self.code = code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Validation (raised before any network call)
# ---------------------------------------------------------------------------


class ValidationError(RecordSyncError):
    """Base for input rejected locally."""

    def __init__(self, detail: str, code: str = "VALIDATION_ERROR") -> None:
        super().__init__(detail=detail, code=code)


class UnsupportedAudioFormatError(ValidationError):
    """Raised when a file extension is not in the audio allow-list."""

    def __init__(self, extension: str) -> None:
        self.extension = extension
        super().__init__(
            detail=f"Unsupported audio format: {extension or '(none)'}",
            code="UNSUPPORTED_AUDIO_FORMAT",
        )


class EmptyAudioFileError(ValidationError):
    """Raised when the upload source is missing or has zero bytes."""

    def __init__(self, path: str) -> None:
        super().__init__(
            detail=f"Audio file is missing or empty: {path}",
            code="EMPTY_AUDIO_FILE",
        )


class InvalidTitleError(ValidationError):
    """Raised when a rename is attempted with a blank title."""

    def __init__(self) -> None:
        super().__init__(detail="Title must not be empty", code="INVALID_TITLE")


# ---------------------------------------------------------------------------
# Remote
# ---------------------------------------------------------------------------


class APIError(RecordSyncError):
    """User-friendly API error with categorized message.

    Categories: "connection", "timeout", "http", "unauthorized", "network",
    "decoding", "unknown". ``status_code`` is set for HTTP responses.
    """

    def __init__(
        self,
        message: str,
        category: str = "unknown",
        status_code: int | None = None,
    ) -> None:
        self.message = message
        self.category = category
        self.status_code = status_code
        super().__init__(detail=message, code=f"API_{category.upper()}")


class AnalysisVersionConflictError(RecordSyncError):
    """Raised when the server reports analysis versions that break ordering."""

    def __init__(self, recording_id: object, analysis_type: str, version: int) -> None:
        super().__init__(
            detail=(
                f"Version {version} of {analysis_type} for recording "
                f"{recording_id} is not newer than a known version"
            ),
            code="ANALYSIS_VERSION_CONFLICT",
        )


class AnalysisNotFoundError(RecordSyncError):
    """Raised when an analysis version is not in the loaded history."""

    def __init__(self, history_id: object) -> None:
        super().__init__(
            detail=f"Analysis version not found: {history_id}",
            code="ANALYSIS_NOT_FOUND",
        )


class RecordingNotFoundError(RecordSyncError):
    """Raised when a recording ID is not in the local collection."""

    def __init__(self, recording_id: object) -> None:
        super().__init__(
            detail=f"Recording not found: {recording_id}",
            code="RECORDING_NOT_FOUND",
        )


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class AuthenticationRequiredError(RecordSyncError):
    """Raised internally while no signed-in user with an access token exists."""

    def __init__(self) -> None:
        super().__init__(
            detail="No authenticated user session is available",
            code="AUTHENTICATION_REQUIRED",
        )
