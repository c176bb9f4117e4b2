"""Scan orchestration: walk, fetch metadata, save, report progress.

Two modes share one per-folder pipeline:

- full: walk the whole tree once, then fetch and save everything. Suited
  to small or local libraries.
- batched: discover the top-level folders, checkpoint them as a scan job
  and process them a batch at a time. Default for TV and recommended for
  large or network-mounted libraries; a failed job can be resumed.

Within one folder the phases are strictly sequential
(walk -> fetch metadata -> fetch seasons -> save). Per-folder and
per-item failures are logged and counted; configuration and job-level
failures fail the scan (and its job) and propagate.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
import re
import sqlite3
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from libscan.config.models import LibscanConfig
from libscan.db.connection import transaction
from libscan.db.queries import get_library, upsert_library
from libscan.db.types import LibraryRecord, MediaType, ScanJobRecord
from libscan.jobs.controller import (
    batch_size_for,
    create_scan_job,
    fail_scan_job,
    get_next_batch,
    mark_batch_processed,
    prepare_resume,
    start_scan_job,
)
from libscan.library.exceptions import LibraryNotFoundError
from libscan.library.path_mapping import PathMapper
from libscan.library.writer import PersistenceWriter, SaveStatus
from libscan.logging.context import scan_context
from libscan.metadata.fetcher import FetchResult, MetadataFetcher
from libscan.metadata.provider import MetadataProvider
from libscan.metadata.rate_limit import RateLimiter
from libscan.metadata.stored import load_stored_metadata
from libscan.scanner.config import ScanConfig
from libscan.scanner.filters import is_video_file, should_skip_entry
from libscan.scanner.models import MediaEntry
from libscan.scanner.progress import (
    ProgressEvent,
    ProgressSink,
    ScanPhase,
    emit_safely,
    percent,
)
from libscan.scanner.scan_log import ScanLogger
from libscan.scanner.timeouts import with_timeout_and_retry
from libscan.scanner.validation import ScanTarget, validate_scan_request
from libscan.scanner.walker import walk

logger = logging.getLogger(__name__)

# Batch unit meaning "the loose files directly under the root"
ROOT_FOLDER = "."

# Emit a fetch progress event every this many resolved titles
_FETCH_PROGRESS_EVERY = 5


def library_slug(name: str) -> str:
    """Lowercase ``name`` with each run of non-alphanumerics turned into "-"."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def default_library_name(path: str) -> str:
    return f"Library - {path}"


def discover_folders(root: str | Path, config: ScanConfig) -> list[str]:
    """Top-level folder names under ``root`` to process as batch units.

    Filtered directories and those not matching the directory pattern are
    left out. For movies, loose video files at the root add the
    ROOT_FOLDER unit.

    Raises:
        OSError: If ``root`` cannot be listed.
    """
    folders: list[str] = []
    has_root_files = False
    with os.scandir(root) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        try:
            is_dir = entry.is_dir(follow_symlinks=config.follow_symlinks)
        except OSError as e:
            logger.warning("Cannot access %s: %s", entry.path, e)
            continue
        if should_skip_entry(entry.name, is_dir):
            continue
        if is_dir:
            if config.should_include_directory(entry.name):
                folders.append(entry.name)
        elif is_video_file(entry.name, config.extensions):
            has_root_files = True

    if has_root_files and config.media_type is MediaType.MOVIE:
        folders.insert(0, ROOT_FOLDER)
    return folders


@dataclass
class ScanSummary:
    """Aggregate result of one scan or resume."""

    library_id: int
    library_name: str
    media_type: MediaType
    root_path: str
    job_id: str | None = None
    total_files: int = 0
    total_saved: int = 0
    skipped: int = 0
    failed: int = 0
    folders_processed: int = 0
    folders_failed: int = 0
    metadata_from_cache: int = 0
    metadata_from_provider: int = 0
    metadata_not_found: int = 0
    metadata_failed: int = 0
    warnings: list[str] = field(default_factory=list)
    scan_log_path: Path | None = None

    def add_fetch(self, result: FetchResult) -> None:
        self.metadata_from_cache += result.from_cache
        self.metadata_from_provider += result.from_provider
        self.metadata_not_found += result.not_found
        self.metadata_failed += result.failed

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["media_type"] = self.media_type.value
        data["scan_log_path"] = str(self.scan_log_path) if self.scan_log_path else None
        return data


@dataclass
class _ScanRun:
    """State shared by the phases of one scan."""

    library: LibraryRecord
    target: ScanTarget
    config: ScanConfig
    fetcher: MetadataFetcher
    writer: PersistenceWriter
    scan_log: ScanLogger
    summary: ScanSummary
    job: ScanJobRecord | None = None

    @property
    def root(self) -> str:
        return self.target.scan_path


class ScanOrchestrator:
    """Run library scans against one database connection.

    Example:
        async with TmdbClient(config.provider) as client:
            orchestrator = ScanOrchestrator(conn, client, settings=config)
            summary = await orchestrator.scan(
                "/media/Movies", ScanConfig.create("movie")
            )

    One orchestrator runs one scan at a time; use ScanQueue to serialize
    requests.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        provider: MetadataProvider,
        *,
        settings: LibscanConfig | None = None,
        rate_limiter: RateLimiter | None = None,
        progress: ProgressSink | None = None,
        path_mapper: PathMapper | None = None,
        check_layout: bool = True,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            conn: Database connection; saves run on the event loop thread.
            provider: Metadata source.
            settings: Effective configuration; defaults when None.
            rate_limiter: Provider gate; built from settings when None.
            progress: Receiver of progress events.
            path_mapper: Host/container path translation.
            check_layout: Run the broad-root and media-type heuristics.
        """
        self.conn = conn
        self.provider = provider
        self.settings = settings or LibscanConfig()
        self.rate_limiter = rate_limiter or RateLimiter.from_config(
            self.settings.rate_limit
        )
        self.progress = progress
        self.path_mapper = path_mapper or PathMapper(self.settings.paths)
        self.check_layout = check_layout

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def scan(self, path: str, config: ScanConfig) -> ScanSummary:
        """Validate ``path`` and scan it in full or batched mode.

        Args:
            path: Library root as supplied by the caller (host form).
            config: Scan options; ``config.batched`` picks the mode.

        Returns:
            ScanSummary with aggregate counts.

        Raises:
            ScanValidationError: If the path is unacceptable.
            LibraryNotFoundError: If the library vanished mid-scan.
            ScanError: Other scan-level failures.
        """
        self._emit(ProgressEvent(ScanPhase.STARTING, message=f"Starting scan of {path}"))
        try:
            target = validate_scan_request(
                path,
                config.media_type,
                self.path_mapper,
                check_layout=self.check_layout,
            )
            library = self.ensure_library(
                target.requested_path, config.media_type, config.library_name
            )
        except Exception as e:
            self._emit_error(e)
            raise

        run = self._new_run(library, target, config)
        run.summary.warnings.extend(target.warnings)
        mode = self._run_batched if config.batched else self._run_full
        return await self._execute(run, mode)

    async def resume(self, job_id: str) -> ScanSummary:
        """Continue a FAILED or PENDING scan job with its remaining folders.

        Raises:
            JobNotFoundError: If the job doesn't exist.
            JobStateError: If the job is COMPLETED or IN_PROGRESS.
            LibraryNotFoundError: If the job's library no longer exists.
        """
        job = prepare_resume(self.conn, job_id)
        library = get_library(self.conn, job.library_id)
        if library is None:
            fail_scan_job(self.conn, job_id, f"Library {job.library_id} not found")
            raise LibraryNotFoundError(job.library_id)

        config = ScanConfig.create(
            job.media_type,
            batched=True,
            library_name=library.name,
            depth_limits=self._depth_limits(),
        )
        target = ScanTarget(requested_path=library.library_path, scan_path=job.root_path)
        run = self._new_run(library, target, config)
        run.job = job
        run.summary.job_id = job.id
        self._emit(
            ProgressEvent(
                ScanPhase.STARTING,
                message=f"Resuming scan job {job.id}",
                library_id=library.id,
                scan_job_id=job.id,
            )
        )
        return await self._execute(run, self._run_job)

    def ensure_library(
        self, path: str, media_type: MediaType, name: str | None = None
    ) -> LibraryRecord:
        """Create or update the library for ``path``."""
        name = name or default_library_name(path)
        with transaction(self.conn):
            library = upsert_library(
                self.conn, name, library_slug(name), path, media_type
            )
        logger.info("Using library %s (id %d)", library.name, library.id)
        return library

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    async def _execute(self, run: _ScanRun, mode) -> ScanSummary:
        summary = run.summary
        with scan_context(library_id=str(run.library.id)):
            try:
                await mode(run)
            except Exception as e:
                logger.exception("Scan of %s failed: %s", run.root, e)
                if run.job is not None:
                    fail_scan_job(self.conn, run.job.id, str(e))
                self._emit_error(e, run)
                raise
            finally:
                summary.scan_log_path = run.scan_log.write()

        logger.info(
            "Scan complete: %d files, %d saved, %d skipped, %d failed; "
            "metadata %d from cache, %d from provider",
            summary.total_files,
            summary.total_saved,
            summary.skipped,
            summary.failed,
            summary.metadata_from_cache,
            summary.metadata_from_provider,
        )
        self._emit(
            ProgressEvent(
                ScanPhase.COMPLETE,
                progress=100,
                current=summary.total_saved,
                total=summary.total_files,
                message=(
                    f"Scan complete: {summary.total_saved} of "
                    f"{summary.total_files} files saved"
                ),
                library_id=run.library.id,
                scan_job_id=summary.job_id,
                extra=summary.to_dict(),
            )
        )
        return summary

    async def _run_full(self, run: _ScanRun) -> None:
        scan = self.settings.scan
        self._emit(
            ProgressEvent(
                ScanPhase.DISCOVERY,
                progress=5,
                message=f"Scanning directory tree: {run.root}",
                library_id=run.library.id,
            )
        )
        result = await with_timeout_and_retry(
            lambda: walk(run.root, run.config),
            f"scan {run.root}",
            timeout=scan.discovery_timeout,
            max_retries=scan.discovery_retries,
        )
        await self._process_entries(run, result.entries, base_progress=10, span=90)

    async def _run_batched(self, run: _ScanRun) -> None:
        scan = self.settings.scan
        self._emit(
            ProgressEvent(
                ScanPhase.DISCOVERY,
                message=f"Discovering folders in {run.root}",
                library_id=run.library.id,
            )
        )
        folders = await with_timeout_and_retry(
            lambda: asyncio.to_thread(discover_folders, run.root, run.config),
            f"discover folders in {run.root}",
            timeout=scan.discovery_timeout,
            max_retries=scan.discovery_retries,
        )
        if not folders:
            logger.warning("No folders to scan in %s", run.root)
            return

        job = create_scan_job(
            self.conn,
            run.library.id,
            run.root,
            run.config.media_type,
            folders,
            batch_size_for(run.config.media_type, scan),
        )
        run.job = start_scan_job(self.conn, job.id)
        run.summary.job_id = job.id
        self._emit(
            ProgressEvent(
                ScanPhase.DISCOVERY,
                total=len(folders),
                message=(
                    f"Found {len(folders)} folders; processing in "
                    f"{job.total_batches} batches of {job.batch_size}"
                ),
                library_id=run.library.id,
                scan_job_id=job.id,
            )
        )
        await self._run_job(run)

    async def _run_job(self, run: _ScanRun) -> None:
        """Process batches until the job's pending folders are drained."""
        job = run.job
        if job is None:
            raise RuntimeError("_run_job needs a scan job")

        with scan_context(job_id=job.id):
            while (batch := get_next_batch(self.conn, job.id)) is not None:
                processed: list[str] = []
                failed: list[str] = []
                saved_in_batch = 0
                settled = job.processed_count + job.failed_count

                for index, folder in enumerate(batch):
                    base = percent(settled + index, job.total_folders)
                    try:
                        saved, files = await self._process_folder(run, folder, base)
                    except LibraryNotFoundError:
                        raise
                    except Exception as e:
                        failed.append(folder)
                        run.summary.folders_failed += 1
                        logger.error("Folder %s failed: %s", folder, e)
                        saved, files = 0, 0
                    else:
                        processed.append(folder)
                        run.summary.folders_processed += 1
                    saved_in_batch += saved
                    self._emit(
                        ProgressEvent(
                            ScanPhase.BATCH_COMPLETE,
                            progress=percent(settled + index + 1, job.total_folders),
                            current=settled + index + 1,
                            total=job.total_folders,
                            message=f"Finished {folder}: {saved} saved",
                            library_id=run.library.id,
                            scan_job_id=job.id,
                            batch_item_complete={
                                "folder_name": folder,
                                "items_saved": saved,
                                "total_items": files,
                            },
                        )
                    )

                job = mark_batch_processed(
                    self.conn, job.id, processed, failed, saved_in_batch
                )
                run.job = job
                self._emit(
                    ProgressEvent(
                        ScanPhase.BATCH_COMPLETE,
                        progress=percent(
                            job.processed_count + job.failed_count, job.total_folders
                        ),
                        current=job.current_batch,
                        total=job.total_batches,
                        message=(
                            f"Batch {job.current_batch}/{job.total_batches} complete "
                            f"({len(processed)} processed, {len(failed)} failed)"
                        ),
                        library_id=run.library.id,
                        scan_job_id=job.id,
                    )
                )

    # ------------------------------------------------------------------
    # Per-folder pipeline
    # ------------------------------------------------------------------

    async def _process_folder(
        self, run: _ScanRun, folder: str, base_progress: int
    ) -> tuple[int, int]:
        """Walk one top-level folder and process what it holds.

        Returns:
            (items saved, media files found).
        """
        scan = self.settings.scan
        is_root = folder == ROOT_FOLDER
        start = Path(run.root) if is_root else Path(run.root) / folder

        with scan_context(folder=folder):
            self._emit(
                ProgressEvent(
                    ScanPhase.SCANNING,
                    progress=base_progress,
                    message=f"Scanning {folder}",
                    library_id=run.library.id,
                    scan_job_id=run.summary.job_id,
                )
            )
            result = await with_timeout_and_retry(
                lambda: walk(run.root, run.config, start, recurse=not is_root),
                f"scan folder {folder}",
                timeout=scan.folder_timeout,
                max_retries=scan.folder_retries,
            )
            files = sum(1 for e in result.entries if not e.is_directory)
            if not result.entries:
                logger.info("No media in %s", folder)
                return 0, 0
            saved = await self._process_entries(
                run, result.entries, base_progress=base_progress, span=0
            )
            return saved, files

    async def _process_entries(
        self,
        run: _ScanRun,
        entries: list[MediaEntry],
        *,
        base_progress: int,
        span: int,
    ) -> int:
        """Fetch metadata for ``entries`` and save their media files.

        ``span`` is the share of overall progress this call covers; zero
        keeps the reported progress at ``base_progress``.

        Returns:
            Number of files saved.
        """
        summary = run.summary
        config = run.config
        media_files = [e for e in entries if not e.is_directory]
        for entry in media_files:
            run.scan_log.file_found(entry)
        summary.total_files += len(media_files)

        def stage(fraction: float) -> int:
            return base_progress + int(span * fraction)

        self._emit(
            ProgressEvent(
                ScanPhase.FETCHING_METADATA,
                progress=stage(0),
                total=len(entries),
                message=f"Fetching metadata for {len(entries)} entries",
                library_id=run.library.id,
                scan_job_id=summary.job_id,
            )
        )

        def on_fetch_progress(done: int, total: int) -> None:
            if done == total or done % _FETCH_PROGRESS_EVERY == 0:
                self._emit(
                    ProgressEvent(
                        ScanPhase.FETCHING_METADATA,
                        progress=stage(0.6 * done / total),
                        current=done,
                        total=total,
                        message=f"Metadata: {done}/{total} titles",
                        library_id=run.library.id,
                        scan_job_id=summary.job_id,
                    )
                )

        fetched = await run.fetcher.fetch_all(
            entries,
            config.media_type,
            run.library.id,
            rescan=config.rescan,
            on_progress=on_fetch_progress,
        )
        summary.add_fetch(fetched)

        if config.media_type is MediaType.TV:
            await run.fetcher.fetch_season_metadata(entries)

        return self._save_entries(run, media_files, stage(0.75), stage(1.0))

    def _save_entries(
        self,
        run: _ScanRun,
        media_files: list[MediaEntry],
        start_progress: int,
        end_progress: int,
    ) -> int:
        summary = run.summary
        total = len(media_files)
        saved = 0
        self._emit(
            ProgressEvent(
                ScanPhase.SAVING,
                progress=start_progress,
                total=total,
                message=f"Saving {total} files",
                library_id=run.library.id,
                scan_job_id=summary.job_id,
            )
        )
        for index, entry in enumerate(media_files, start=1):
            try:
                outcome = run.writer.save(
                    entry,
                    run.config.media_type,
                    run.fetcher.episode_cache,
                    run.library.id,
                )
            except LibraryNotFoundError:
                raise
            except Exception as e:
                summary.failed += 1
                run.scan_log.save_failed(entry.path, str(e))
                logger.error("Failed to save %s: %s", entry.name, e)
                continue

            if outcome.status is SaveStatus.SAVED:
                saved += 1
                summary.total_saved += 1
                run.scan_log.saved(entry.path, outcome.title or entry.name)
            else:
                summary.skipped += 1
                run.scan_log.skipped(entry.path, outcome.reason or "not saved")

            if index == total or index % 10 == 0:
                progress = start_progress + (end_progress - start_progress) * index // total
                self._emit(
                    ProgressEvent(
                        ScanPhase.SAVING,
                        progress=progress,
                        current=index,
                        total=total,
                        message=f"Saving to database: {index}/{total}",
                        library_id=run.library.id,
                        scan_job_id=summary.job_id,
                    )
                )
        return saved

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _depth_limits(self) -> dict[MediaType, int]:
        scan = self.settings.scan
        return {MediaType.MOVIE: scan.movie_max_depth, MediaType.TV: scan.tv_max_depth}

    def _new_run(
        self, library: LibraryRecord, target: ScanTarget, config: ScanConfig
    ) -> _ScanRun:
        fetcher = MetadataFetcher(
            self.provider,
            self.rate_limiter,
            stored_lookup=functools.partial(load_stored_metadata, self.conn),
            language=self.settings.provider.language,
            image_timeout=self.settings.scan.image_timeout,
        )
        scan_log = ScanLogger(
            library_id=library.id,
            library_name=library.name,
            log_dir=self.settings.scan.scan_log_dir,
        )
        fetcher.scan_log = scan_log
        writer = PersistenceWriter(
            self.conn,
            path_mapper=self.path_mapper,
            original_root=target.requested_path,
        )
        summary = ScanSummary(
            library_id=library.id,
            library_name=library.name,
            media_type=config.media_type,
            root_path=target.requested_path,
        )
        return _ScanRun(library, target, config, fetcher, writer, scan_log, summary)

    def _emit(self, event: ProgressEvent) -> None:
        emit_safely(self.progress, event)

    def _emit_error(self, error: Exception, run: _ScanRun | None = None) -> None:
        self._emit(
            ProgressEvent(
                ScanPhase.ERROR,
                message="Scan failed",
                error=str(error),
                library_id=run.library.id if run else None,
                scan_job_id=run.summary.job_id if run else None,
            )
        )
