"""Tests for progress events and sinks."""

from libscan.scanner.progress import (
    ProgressEvent,
    RecordingProgressSink,
    ScanPhase,
    emit_safely,
    percent,
)


class _BrokenSink:
    def emit(self, event):
        raise RuntimeError("socket closed")


class TestProgress:
    """Progress helpers."""

    def test_percent(self):
        assert percent(1, 3) == 33
        assert percent(3, 3) == 100
        assert percent(0, 0) == 0

    def test_failing_sink_does_not_raise(self):
        """Sink errors are logged, never propagated."""
        emit_safely(_BrokenSink(), ProgressEvent(ScanPhase.SCANNING))

    def test_recording_sink(self):
        sink = RecordingProgressSink()
        emit_safely(sink, ProgressEvent(ScanPhase.STARTING))
        emit_safely(sink, ProgressEvent(ScanPhase.COMPLETE, progress=100))
        assert sink.phases == [ScanPhase.STARTING, ScanPhase.COMPLETE]

    def test_to_dict_drops_empty_fields(self):
        """Serialized events omit unset optional fields."""
        data = ProgressEvent(ScanPhase.FETCHING_METADATA, message="x").to_dict()
        assert data["phase"] == "fetching-metadata"
        assert "error" not in data
        assert "extra" not in data
