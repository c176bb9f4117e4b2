"""Scan progress events and sinks.

The orchestrator reports progress through a ProgressSink. Sinks are
fire-and-forget: ``emit_safely`` swallows nothing silently but never lets
a failing sink interrupt a scan.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Protocol

import click

logger = logging.getLogger(__name__)


class ScanPhase(str, Enum):
    """Phase tag carried by every progress event."""

    STARTING = "starting"
    DISCOVERY = "discovery"
    SCANNING = "scanning"
    FETCHING_METADATA = "fetching-metadata"
    SAVING = "saving"
    BATCH_COMPLETE = "batch-complete"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class ProgressEvent:
    """One progress notification."""

    phase: ScanPhase
    progress: int = 0
    current: int = 0
    total: int = 0
    message: str = ""
    library_id: int | None = None
    scan_job_id: str | None = None
    batch_item_complete: dict[str, Any] | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["phase"] = self.phase.value
        return {k: v for k, v in data.items() if v is not None and v != {}}


class ProgressSink(Protocol):
    """Receiver of scan progress events.

    ``emit`` must return promptly; slow consumers should buffer.
    """

    def emit(self, event: ProgressEvent) -> None: ...


class NullProgressSink:
    """Sink that discards every event."""

    def emit(self, event: ProgressEvent) -> None:
        pass


class LoggingProgressSink:
    """Sink that writes events to the module logger."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def emit(self, event: ProgressEvent) -> None:
        if event.phase is ScanPhase.ERROR:
            logger.error("[%s] %s", event.phase.value, event.error or event.message)
            return
        logger.log(
            self.level, "[%s %d%%] %s", event.phase.value, event.progress, event.message
        )


class StderrProgressSink:
    """Sink that prints one line per event to stderr, for the CLI."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled

    def emit(self, event: ProgressEvent) -> None:
        if not self.enabled:
            return
        if event.phase is ScanPhase.ERROR:
            click.secho(f"Error: {event.error or event.message}", fg="red", err=True)
            return
        click.echo(f"[{event.progress:3d}%] {event.message}", err=True)


class RecordingProgressSink:
    """Sink that keeps every event in memory."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def phases(self) -> list[ScanPhase]:
        return [e.phase for e in self.events]


def emit_safely(sink: ProgressSink | None, event: ProgressEvent) -> None:
    """Deliver ``event`` to ``sink``, logging (not raising) sink failures."""
    if sink is None:
        return
    try:
        sink.emit(event)
    except Exception:
        logger.warning(
            "Progress sink failed for %s event", event.phase.value, exc_info=True
        )


def percent(done: int, total: int) -> int:
    """Integer percentage, floored; 0 when total is 0."""
    if total <= 0:
        return 0
    return min(100, done * 100 // total)
