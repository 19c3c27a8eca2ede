"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """RecordSync settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        api_base_url: Base URL of the remote recording service (including ``/api``).
        device_token_max_attempts: Bounded attempts while waiting for a login.
        device_token_retry_interval: Seconds between attempts.
        database_url: Async SQLAlchemy connection string for the local cache.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Remote API ---
    api_base_url: str = "http://localhost:9527/api"
    request_timeout: float = 30.0
    upload_timeout: float = 300.0  # Large recordings over slow links
    upload_chunk_size: int = 64 * 1024

    # --- Upload ---
    default_title: str = "Untitled Recording"
    allowed_audio_extensions: list[str] = ["mp3", "wav", "m4a", "aac", "flac", "mp4", "ogg"]

    # --- Status polling (fallback when push delivery is lost) ---
    poll_interval: float = 5.0
    poll_max_attempts: int = 60
    recent_limit: int = 10

    # --- Device token delivery ---
    device_token_max_attempts: int = 5
    device_token_retry_interval: float = 3.0
    device_platform: str = "ios"

    # --- Storage ---
    database_url: str = "sqlite+aiosqlite:///data/recordsync.db"

    # --- Application ---
    log_level: str = "INFO"  # Python logging level


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
