"""
Remote module - Recording service API abstraction layer.

Factory function for creating the API client used by the services.
"""

from .base import BaseRecordingAPI, ProgressCallback

__all__ = ["BaseRecordingAPI", "ProgressCallback", "create_recording_api"]


def create_recording_api(client: str = "http", **kwargs) -> BaseRecordingAPI:
    """Factory function to create a remote API client.

    Args:
        client: Client implementation name ("http")
        **kwargs: Implementation-specific configuration

    Returns:
        BaseRecordingAPI implementation instance

    Raises:
        ValueError: If client is unknown
    """
    if client == "http":
        from .http import HTTPRecordingAPI

        return HTTPRecordingAPI(**kwargs)
    else:
        raise ValueError(f"Unknown recording API client: {client}")
