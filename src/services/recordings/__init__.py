"""
Recordings module - Recording collection and upload/status coordinator.

Import ``RecordingStore`` from ``.store`` and ``RecordingCoordinator`` from
``.coordinator``; the coordinator depends on the analysis service, which in
turn depends on the store.
"""
