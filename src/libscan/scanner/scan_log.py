"""Per-scan audit log: one JSON file per scan run.

Each discovered file gets a record tracking how (and whether) metadata
was matched and whether it was saved. The summary is computed from the
records when the log is written.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from libscan.scanner.models import MediaEntry

logger = logging.getLogger(__name__)

MetadataSource = Literal["cache", "database", "provider", "search"]
_SOURCES: tuple[str, ...] = ("cache", "database", "provider", "search")

SKIPPED_PREFIX = "Skipped: "


@dataclass
class ScanLogRecord:
    """What happened to one discovered file."""

    file_path: str
    file_name: str
    extracted_ids: dict[str, Any]
    metadata_found: bool = False
    metadata_source: MetadataSource | None = None
    provider_id: str | None = None
    matched_title: str | None = None
    search_attempted: bool = False
    search_results: int | None = None
    saved: bool = False
    error: str | None = None
    saved_at: str | None = None


@dataclass
class ScanLogger:
    """Collects ScanLogRecords for one scan and writes them as JSON.

    Calls for paths that were never registered with ``file_found`` are
    ignored.
    """

    library_id: int
    library_name: str
    log_dir: Path | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _records: dict[str, ScanLogRecord] = field(default_factory=dict, repr=False)
    _clock_start: float = field(default_factory=time.monotonic, repr=False)

    @property
    def records(self) -> list[ScanLogRecord]:
        return list(self._records.values())

    @property
    def log_path(self) -> Path | None:
        if self.log_dir is None:
            return None
        stamp = self.started_at.strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        return self.log_dir / f"scan-{self.library_id}-{stamp}.json"

    def file_found(self, entry: MediaEntry) -> None:
        ids = {k: v for k, v in asdict(entry.extracted_ids).items() if v is not None}
        self._records[entry.path] = ScanLogRecord(
            file_path=entry.path, file_name=entry.name, extracted_ids=ids
        )

    def metadata_cached(
        self, path: str, provider_id: str, source: MetadataSource = "cache"
    ) -> None:
        if record := self._records.get(path):
            record.metadata_found = True
            record.metadata_source = source
            record.provider_id = provider_id

    def metadata_fetched(self, path: str, provider_id: str, title: str) -> None:
        if record := self._records.get(path):
            record.metadata_found = True
            record.metadata_source = "provider"
            record.provider_id = provider_id
            record.matched_title = title

    def search_attempted(
        self,
        path: str,
        results: int,
        matched_id: str | None = None,
        matched_title: str | None = None,
    ) -> None:
        if record := self._records.get(path):
            record.search_attempted = True
            record.search_results = results
            if matched_id:
                record.metadata_found = True
                record.metadata_source = "search"
                record.provider_id = matched_id
                record.matched_title = matched_title

    def search_failed(self, path: str, error: str | None = None) -> None:
        if record := self._records.get(path):
            record.search_attempted = True
            record.search_results = 0
            if error:
                record.error = f"Search failed: {error}"

    def saved(self, path: str, title: str) -> None:
        if record := self._records.get(path):
            record.saved = True
            record.saved_at = datetime.now(timezone.utc).isoformat()
            record.matched_title = record.matched_title or title

    def save_failed(self, path: str, error: str) -> None:
        if record := self._records.get(path):
            record.saved = False
            record.error = f"Save failed: {error}"

    def skipped(self, path: str, reason: str) -> None:
        if record := self._records.get(path):
            record.saved = False
            record.error = f"{SKIPPED_PREFIX}{reason}"

    def summary(self) -> dict[str, Any]:
        """Totals over all records; skipped files are not counted as failed."""
        records = self.records
        finished = datetime.now(timezone.utc)
        duration = time.monotonic() - self._clock_start
        unsaved = [r for r in records if not r.saved and r.error]
        skipped = sum(1 for r in unsaved if r.error.startswith(SKIPPED_PREFIX))
        return {
            "library_id": self.library_id,
            "library_name": self.library_name,
            "scan_start_time": self.started_at.isoformat(),
            "scan_end_time": finished.isoformat(),
            "duration_ms": int(duration * 1000),
            "duration_seconds": round(duration),
            "total_files": len(records),
            "matched": sum(1 for r in records if r.metadata_found),
            "not_matched": sum(1 for r in records if not r.metadata_found),
            "saved": sum(1 for r in records if r.saved),
            "failed": len(unsaved) - skipped,
            "skipped": skipped,
            "metadata_sources": {
                source: sum(1 for r in records if r.metadata_source == source)
                for source in _SOURCES
            },
        }

    def write(self) -> Path | None:
        """Write the log file; returns its path, or None when not written.

        A write failure is logged and does not affect the scan.
        """
        path = self.log_path
        if path is None:
            return None
        summary = self.summary()
        data = {"summary": summary, "entries": [asdict(r) for r in self.records]}
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error("Failed to save scan log to %s: %s", path, e)
            return None
        logger.info(
            "Scan log saved to %s (%d/%d matched, %d/%d saved)",
            path,
            summary["matched"],
            summary["total_files"],
            summary["saved"],
            summary["total_files"],
        )
        return path
