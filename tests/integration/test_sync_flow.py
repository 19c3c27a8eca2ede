"""End-to-end recording sync against the fake recording service.

Exercises upload with progress, push and poll reconciliation, analysis
version switching, edits, and the offline snapshot through the real HTTP
client and local cache.
"""

import pytest

from src.core.exceptions import APIError
from src.core.models import AnalysisStatus, AnalysisType, RecordingStatus


async def _upload(services, audio_file, title="Standup"):
    return await services.coordinator.upload_recording(audio_file, title)


class TestUploadAndReconcile:
    async def test_upload_lists_recording_first(self, signed_in, backend, audio_file):
        recording = await _upload(signed_in, audio_file)

        assert backend.uploads == [
            {
                "title": "Standup",
                "filename": "meeting.m4a",
                "size": audio_file.stat().st_size,
                "prompt_template_id": None,
            }
        ]
        coordinator = signed_in.coordinator
        assert coordinator.recordings[0].id == recording.id
        assert coordinator.recordings[0].display_status is RecordingStatus.processing
        assert coordinator.upload_progress == 1.0
        assert coordinator.is_uploading is False

    async def test_push_completion_attaches_analysis(self, signed_in, backend, audio_file):
        recording = await _upload(signed_in, audio_file)
        backend.complete(recording.id)

        handled = await signed_in.bridge.handle_remote_payload(
            {
                "type": "recording_completed",
                "recordingId": str(recording.id),
                "status": "completed",
            }
        )

        assert handled is True
        head = signed_in.coordinator.summaries[0]
        assert head.status == "completed"
        assert head.has_transcript and head.has_summary
        detail = signed_in.coordinator.get_recording(recording.id)
        assert detail.transcription == "transcription v1"
        assert detail.summary == "summary v1"

    async def test_polling_reconciles_without_push(self, signed_in, backend, audio_file):
        recording = await _upload(signed_in, audio_file)
        backend.complete(recording.id)

        status = await signed_in.coordinator.watch_recording(recording.id)

        assert status is RecordingStatus.completed
        assert signed_in.coordinator.get_recording(recording.id).summary == "summary v1"

    async def test_push_for_unknown_recording_is_ignored(self, signed_in, audio_file):
        await _upload(signed_in, audio_file)
        before = signed_in.coordinator.summaries

        await signed_in.bridge.post_completion("00000000-0000-0000-0000-000000000000", "completed")

        assert signed_in.coordinator.summaries == before


class TestAnalysisVersions:
    async def test_regenerate_then_switch_back(self, signed_in, backend, audio_file):
        recording = await _upload(signed_in, audio_file)
        backend.complete(recording.id)
        history = signed_in.history
        await history.list_history(recording.id, AnalysisType.summary)

        fresh = await history.regenerate(recording.id, AnalysisType.summary, provider="claude")
        assert fresh.version == 2
        assert fresh.status is AnalysisStatus.processing

        finished = backend.histories[fresh.id].model_copy(
            update={"status": AnalysisStatus.completed, "content": "better summary"}
        )
        backend.histories[fresh.id] = finished
        await signed_in.api.set_current_analysis(recording.id, fresh.id)

        versions = await history.list_history(recording.id, AnalysisType.summary)
        assert [v.version for v in versions] == [2, 1]
        assert [v.is_current for v in versions] == [True, False]
        assert signed_in.coordinator.get_recording(recording.id).summary == "better summary"

        older = versions[1]
        await history.set_current(recording.id, AnalysisType.summary, older.id)

        assert history.current(recording.id, AnalysisType.summary).id == older.id
        assert signed_in.coordinator.get_recording(recording.id).summary == "summary v1"
        server_current = [h for h in backend.histories.values() if h.is_current]
        assert older.id in {h.id for h in server_current}


class TestEdits:
    async def test_load_rename_delete(self, signed_in, backend, audio_file):
        first = await _upload(signed_in, audio_file, "first")
        second = await _upload(signed_in, audio_file, "second")
        coordinator = signed_in.coordinator

        summaries = await coordinator.load_recordings_summary()
        assert {s.id for s in summaries} == {first.id, second.id}

        await coordinator.update_recording_title(first.id, "renamed")
        assert backend.recordings[first.id].title == "renamed"
        assert coordinator.get_recording(first.id).title == "renamed"

        await coordinator.delete_recording(second.id)
        assert second.id not in backend.recordings
        assert [r.id for r in coordinator.recordings] == [first.id]

    async def test_delete_of_missing_recording_keeps_state(self, signed_in, backend, audio_file):
        recording = await _upload(signed_in, audio_file)
        del backend.recordings[recording.id]

        with pytest.raises(APIError) as exc_info:
            await signed_in.coordinator.delete_recording(recording.id)

        assert exc_info.value.status_code == 404
        assert signed_in.coordinator.get_recording(recording.id) is not None

    async def test_recent_respects_limit(self, signed_in, audio_file):
        for title in ("a", "b", "c"):
            await _upload(signed_in, audio_file, title)

        recent = await signed_in.coordinator.load_recent_recordings(limit=2)

        assert len(recent) == 2


class TestOffline:
    async def test_snapshot_shown_during_outage(self, signed_in, backend, audio_file):
        recording = await _upload(signed_in, audio_file)
        await signed_in.coordinator.load_recordings()

        backend.outage = True
        recordings = await signed_in.coordinator.load_recordings()

        assert [r.id for r in recordings] == [recording.id]
        assert signed_in.coordinator.error == "Cannot reach the server, showing cached recordings."
