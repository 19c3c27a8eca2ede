"""
Async HTTP implementation of the remote recording service.

Uses ``httpx.AsyncClient`` so network calls suspend instead of blocking
the event loop that owns recording state.
"""

import asyncio
import logging
import mimetypes
from collections.abc import AsyncIterator
from pathlib import Path
from uuid import UUID

import httpx
from pydantic import BaseModel, TypeAdapter

from src.core.config import get_settings
from src.core.exceptions import APIError
from src.core.models import AnalysisHistory, AnalysisType, Recording, RecordingSummary
from src.services.remote.base import BaseRecordingAPI, ProgressCallback
from src.services.storage.session import BaseSessionProvider

logger = logging.getLogger(__name__)

_SUMMARY_LIST = TypeAdapter(list[RecordingSummary])
_HISTORY_LIST = TypeAdapter(list[AnalysisHistory])
_RECORDING = TypeAdapter(Recording)
_HISTORY = TypeAdapter(AnalysisHistory)


class RecordingsEnvelope(BaseModel):
    """``GET /recordings`` wraps the list in an object."""

    recordings: list[Recording]


_ENVELOPE = TypeAdapter(RecordingsEnvelope)


class HTTPRecordingAPI(BaseRecordingAPI):
    """Thin async wrapper around httpx for the recording service.

    All methods return parsed models or raise ``APIError`` with
    user-friendly messages for display in the UI.

    Args:
        base_url: Service root, e.g. ``http://localhost:9527/api``.
        session: Source of the bearer token for authenticated calls.
        transport: Optional httpx transport (used in tests).
    """

    def __init__(
        self,
        base_url: str | None = None,
        session: BaseSessionProvider | None = None,
        settings=None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._base_url = (base_url or self._settings.api_base_url).rstrip("/")
        self._session = session
        self._upload_timeout = self._settings.upload_timeout
        self._chunk_size = self._settings.upload_chunk_size
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._settings.request_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _auth_headers(self) -> dict[str, str]:
        if self._session is None:
            return {}
        token = await self._session.access_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(self, method: str, path: str, auth: bool = True, **kwargs) -> httpx.Response:
        """Execute an HTTP request with user-friendly error handling.

        Args:
            method: HTTP method name ("get", "post", "patch", "delete").
            path: Endpoint path relative to the base URL.
            auth: Attach the stored bearer token when one exists.
            **kwargs: Passed through to httpx (json, params, timeout, etc.).

        Returns:
            The httpx Response object with a successful status code.

        Raises:
            APIError: On connection, timeout, HTTP status, or network errors.
        """
        headers = dict(kwargs.pop("headers", None) or {})
        if auth:
            headers.update(await self._auth_headers())
        try:
            resp = await getattr(self._client, method)(path, headers=headers, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.ConnectError:
            raise APIError(
                "Cannot reach the recording service. Check your connection.",
                category="connection",
            ) from None
        except httpx.TimeoutException:
            raise APIError(
                "Request timed out. The server may be overloaded.",
                category="timeout",
            ) from None
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 401:
                raise APIError(
                    "Authentication failed, please sign in again.",
                    category="unauthorized",
                    status_code=status,
                ) from None
            try:
                detail = exc.response.json().get("detail", exc.response.text)
            except Exception:
                detail = exc.response.text or str(exc)
            raise APIError(str(detail), category="http", status_code=status) from None
        except httpx.HTTPError as exc:
            raise APIError(f"Network error: {exc}", category="network") from None

    @staticmethod
    def _decode(adapter: TypeAdapter, resp: httpx.Response):
        try:
            return adapter.validate_python(resp.json())
        except ValueError as exc:
            logger.warning("Undecodable response from %s: %s", resp.request.url, exc)
            raise APIError("Unexpected response from server", category="decoding") from None

    # -- recordings --

    async def upload_recording(
        self,
        file_path: Path,
        title: str,
        on_progress: ProgressCallback | None = None,
        prompt_template_id: int | None = None,
    ) -> Recording:
        file_path = Path(file_path)
        content = await asyncio.to_thread(file_path.read_bytes)
        mime_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"

        form: dict = {"title": title}
        if prompt_template_id is not None:
            form["prompt_template_id"] = str(prompt_template_id)

        # Encode the multipart body once, then stream it in chunks so each
        # chunk handed to the transport can be reported as progress.
        request = self._client.build_request(
            "POST",
            "/recordings/upload",
            data=form,
            files={"file": (file_path.name, content, mime_type)},
        )
        body = request.read()
        total = len(body)
        chunk_size = self._chunk_size

        async def _chunks() -> AsyncIterator[bytes]:
            sent = 0
            for start in range(0, total, chunk_size):
                piece = body[start : start + chunk_size]
                yield piece
                sent += len(piece)
                if on_progress is not None:
                    on_progress(sent / total)

        logger.info("Uploading %s (%d bytes)", file_path.name, len(content))
        resp = await self._request(
            "post",
            "/recordings/upload",
            content=_chunks(),
            headers={
                "Content-Type": request.headers["Content-Type"],
                "Content-Length": str(total),
            },
            timeout=self._upload_timeout,
        )
        return self._decode(_RECORDING, resp)

    async def list_recording_summaries(self, limit: int | None = None) -> list[RecordingSummary]:
        params = {"limit": limit} if limit is not None else None
        resp = await self._request("get", "/recordings/summary", params=params)
        return self._decode(_SUMMARY_LIST, resp)

    async def list_recent_recordings(self, limit: int) -> list[RecordingSummary]:
        resp = await self._request("get", "/recordings/recent", params={"limit": limit})
        return self._decode(_SUMMARY_LIST, resp)

    async def list_recordings(self) -> list[Recording]:
        resp = await self._request("get", "/recordings")
        return self._decode(_ENVELOPE, resp).recordings

    async def get_recording(self, recording_id: UUID) -> Recording:
        resp = await self._request("get", f"/recordings/{recording_id}")
        return self._decode(_RECORDING, resp)

    async def rename_recording(self, recording_id: UUID, title: str) -> None:
        await self._request("patch", f"/recordings/{recording_id}", json={"title": title})

    async def delete_recording(self, recording_id: UUID) -> None:
        await self._request("delete", f"/recordings/{recording_id}")

    # -- analysis history --

    async def get_analysis_history(
        self,
        recording_id: UUID,
        analysis_type: AnalysisType,
    ) -> list[AnalysisHistory]:
        resp = await self._request(
            "get",
            f"/recordings/{recording_id}/analysis-history",
            params={"analysis_type": analysis_type.value},
        )
        return self._decode(_HISTORY_LIST, resp)

    async def set_current_analysis(self, recording_id: UUID, history_id: UUID) -> None:
        await self._request(
            "post",
            f"/recordings/{recording_id}/analysis-history/{history_id}/set-current",
        )

    async def regenerate_analysis(
        self,
        recording_id: UUID,
        analysis_type: AnalysisType,
        provider: str | None = None,
        prompt_template_id: int | None = None,
    ) -> AnalysisHistory:
        body: dict = {}
        if provider:
            body["provider"] = provider
        if prompt_template_id is not None:
            body["prompt_template_id"] = prompt_template_id
        resp = await self._request(
            "post",
            f"/recordings/{recording_id}/regenerate-{analysis_type.value}",
            json=body or None,
        )
        return self._decode(_HISTORY, resp)

    # -- devices --

    async def register_device_token(
        self,
        device_token: str,
        platform: str,
        access_token: str,
    ) -> None:
        await self._request(
            "post",
            "/users/device-token",
            auth=False,
            json={"device_token": device_token, "platform": platform},
            headers={"Authorization": f"Bearer {access_token}"},
        )
