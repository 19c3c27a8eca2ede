"""Unit tests for the in-memory RecordingStore."""

from uuid import uuid4

from src.services.recordings.store import RecordingStore
from tests.factories import make_recording, make_summary


class TestReplace:
    def test_summaries_are_ordered_newest_first(self, store):
        old = make_summary(title="old", minutes_ago=30)
        new = make_summary(title="new", minutes_ago=1)
        mid = make_summary(title="mid", minutes_ago=10)

        store.replace_from_summaries([old, new, mid])

        assert [s.title for s in store.summaries] == ["new", "mid", "old"]
        assert [r.title for r in store.recordings] == ["new", "mid", "old"]

    def test_existing_detail_keeps_content(self, store):
        recording = make_recording(title="draft", transcription="hello world")
        store.replace_from_recordings([recording])
        summary = make_summary(
            title="final", status="completed", id=recording.id, created_at=recording.created_at
        )

        store.replace_from_summaries([summary])

        detail = store.get(recording.id)
        assert detail.title == "final"
        assert detail.status == "completed"
        assert detail.transcription == "hello world"

    def test_replace_drops_missing_ids(self, store):
        gone = make_summary()
        store.replace_from_summaries([gone])
        store.replace_from_summaries([make_summary()])
        assert gone.id not in store
        assert len(store) == 1

    def test_summaries_derived_from_recordings(self, store):
        recording = make_recording(summary="short")
        store.replace_from_recordings([recording])
        summary = store.get_summary(recording.id)
        assert summary.has_summary is True
        assert summary.has_transcript is False


class TestMutations:
    def test_insert_head_goes_first(self, store):
        store.replace_from_summaries([make_summary(minutes_ago=5)])
        uploaded = make_recording(minutes_ago=60)

        store.insert_head(uploaded)

        assert store.recordings[0].id == uploaded.id
        assert len(store) == 2

    def test_insert_head_replaces_same_id(self, store):
        recording = make_recording(title="v1")
        store.insert_head(recording)
        store.insert_head(recording.model_copy(update={"title": "v2"}))
        assert len(store) == 1
        assert store.recordings[0].title == "v2"

    def test_upsert_detail_ignores_unknown(self, store):
        assert store.upsert_detail(make_recording()) is False
        assert len(store) == 0

    def test_upsert_detail_refreshes_summary(self, store):
        summary = make_summary(status="processing")
        store.replace_from_summaries([summary])
        detail = summary.to_recording().model_copy(update={"status": "completed"})

        assert store.upsert_detail(detail) is True
        assert store.get_summary(summary.id).status == "completed"

    def test_upsert_detail_keeps_terminal_status(self, store):
        recording = make_recording(status="completed")
        store.insert_head(recording)
        stale = recording.model_copy(update={"status": "processing", "title": "renamed"})

        assert store.upsert_detail(stale) is True
        assert store.get(recording.id).status == "completed"
        assert store.get(recording.id).title == "renamed"
        assert store.get_summary(recording.id).status == "completed"

    def test_set_status_updates_both_projections(self, store):
        summary = make_summary(status="processing")
        store.replace_from_summaries([summary])

        assert store.set_status(summary.id, "completed") is True

        assert store.get(summary.id).status == "completed"
        assert store.get_summary(summary.id).status == "completed"

    def test_set_status_unknown_id(self, store):
        assert store.set_status(uuid4(), "completed") is False

    def test_set_title(self, store):
        summary = make_summary(title="old")
        store.replace_from_summaries([summary])
        assert store.set_title(summary.id, "new") is True
        assert store.get(summary.id).title == "new"
        assert store.get_summary(summary.id).title == "new"

    def test_remove(self, store):
        recording = make_recording()
        store.insert_head(recording)
        assert store.remove(recording.id) is True
        assert store.remove(recording.id) is False
        assert store.recordings == []


class TestSetAnalysis:
    def test_content_and_flags(self, store):
        recording = make_recording()
        store.insert_head(recording)

        store.set_analysis(
            recording.id, has_transcript=True, transcription="words", has_summary=False
        )

        detail = store.get(recording.id)
        summary = store.get_summary(recording.id)
        assert detail.transcription == "words"
        assert detail.summary is None
        assert summary.has_transcript is True
        assert summary.has_summary is False

    def test_none_leaves_field_untouched(self, store):
        recording = make_recording(summary="kept")
        store.insert_head(recording)

        store.set_analysis(recording.id, has_transcript=False)

        assert store.get(recording.id).summary == "kept"
        assert store.get_summary(recording.id).has_summary is True

    def test_unknown_id(self):
        assert RecordingStore().set_analysis(uuid4(), has_summary=True) is False
