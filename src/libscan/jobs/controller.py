"""Scan job state machine.

A batched scan is checkpointed as a ScanJob row plus one child row per
discovered top-level folder. Folders move from pending to processed or
failed one batch at a time, so a crashed scan can resume where it left
off instead of starting over.

State transitions:
    PENDING -> IN_PROGRESS      (start_scan_job / first batch)
    IN_PROGRESS -> COMPLETED    (pending drained in mark_batch_processed)
    IN_PROGRESS -> FAILED       (fail_scan_job, staleness sweep)
    PENDING/FAILED -> IN_PROGRESS  (prepare_resume)

Every mutating function commits its own transaction.
"""

from __future__ import annotations

import logging
import math
import sqlite3
import uuid
from dataclasses import dataclass

from libscan.config.models import ScanDefaultsConfig
from libscan.db.connection import transaction
from libscan.db.queries import (
    count_folders,
    get_pending_folders,
    get_scan_job,
    insert_scan_job,
    settle_folders,
    update_scan_job,
)
from libscan.db.queries.helpers import _utc_now_iso
from libscan.db.types import FolderState, MediaType, ScanJobRecord, ScanJobStatus
from libscan.jobs.exceptions import JobNotFoundError, JobStateError

logger = logging.getLogger(__name__)

TV_BATCH_SIZE = 5
MOVIE_BATCH_SIZE = 25


def batch_size_for(
    media_type: MediaType, defaults: ScanDefaultsConfig | None = None
) -> int:
    """Folders per batch: small for TV (season fetches per show), larger for movies."""
    if defaults is None:
        return TV_BATCH_SIZE if media_type is MediaType.TV else MOVIE_BATCH_SIZE
    if media_type is MediaType.TV:
        return defaults.tv_batch_size
    return defaults.movie_batch_size


def _require_job(conn: sqlite3.Connection, job_id: str, operation: str) -> ScanJobRecord:
    job = get_scan_job(conn, job_id)
    if job is None:
        raise JobNotFoundError(job_id, operation)
    return job


def create_scan_job(
    conn: sqlite3.Connection,
    library_id: int,
    root_path: str,
    media_type: MediaType,
    folders: list[str],
    batch_size: int | None = None,
) -> ScanJobRecord:
    """Create a PENDING job with every folder pending, in discovery order.

    Args:
        conn: Database connection.
        library_id: Library the scan saves into.
        root_path: Scan root, as the walker reads it.
        media_type: Movie or TV.
        folders: Discovered top-level folder names (duplicates are dropped).
        batch_size: Folders per batch; defaults by media type.

    Returns:
        The created job with its folder lists loaded.
    """
    if batch_size is None:
        batch_size = batch_size_for(media_type)
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")

    unique = list(dict.fromkeys(folders))
    now = _utc_now_iso()
    job = ScanJobRecord(
        id=str(uuid.uuid4()),
        library_id=library_id,
        root_path=root_path,
        media_type=media_type,
        status=ScanJobStatus.PENDING,
        batch_size=batch_size,
        total_folders=len(unique),
        total_batches=math.ceil(len(unique) / batch_size),
        current_batch=0,
        processed_count=0,
        failed_count=0,
        total_items_saved=0,
        started_at=None,
        last_batch_at=None,
        completed_at=None,
        error_message=None,
        created_at=now,
        updated_at=now,
    )
    with transaction(conn):
        insert_scan_job(conn, job, unique)
    job.pending = unique

    logger.info(
        "Created scan job %s: %d folders in %d batches of %d",
        job.id,
        job.total_folders,
        job.total_batches,
        batch_size,
    )
    return job


def start_scan_job(conn: sqlite3.Connection, job_id: str) -> ScanJobRecord:
    """Move a PENDING job to IN_PROGRESS and stamp its start time."""
    job = _require_job(conn, job_id, "start")
    if job.status is not ScanJobStatus.PENDING:
        raise JobStateError(
            job_id, job.status.value, f"Cannot start scan job {job_id}: {job.status.value}"
        )
    with transaction(conn):
        update_scan_job(
            conn, job_id, status=ScanJobStatus.IN_PROGRESS, started_at=_utc_now_iso()
        )
    return _require_job(conn, job_id, "start")


def get_next_batch(conn: sqlite3.Connection, job_id: str) -> list[str] | None:
    """Next ``batch_size`` pending folder names, or None when nothing is left.

    Raises:
        JobNotFoundError: If the job doesn't exist.
    """
    job = get_scan_job(conn, job_id)
    if job is None:
        raise JobNotFoundError(job_id, "get next batch of")
    if job.status is ScanJobStatus.COMPLETED:
        return None
    batch = get_pending_folders(conn, job_id, limit=job.batch_size)
    return batch or None


def mark_batch_processed(
    conn: sqlite3.Connection,
    job_id: str,
    processed: list[str],
    failed: list[str],
    items_saved: int = 0,
) -> ScanJobRecord:
    """Settle one batch and advance the job.

    Folders move out of pending into the processed or failed list. The
    batch counter increments, and the job completes as soon as no folder
    is pending.

    Args:
        conn: Database connection.
        job_id: Job being advanced.
        processed: Folders of this batch that finished.
        failed: Folders of this batch that failed; must not overlap
            ``processed``.
        items_saved: Media items saved by this batch.

    Returns:
        The updated job.

    Raises:
        JobNotFoundError: If the job doesn't exist.
        JobStateError: If the job is already COMPLETED.
        ValueError: If a folder appears in both lists.
    """
    overlap = set(processed) & set(failed)
    if overlap:
        raise ValueError(f"Folders both processed and failed: {sorted(overlap)}")

    job = _require_job(conn, job_id, "mark batch for")
    if job.status is ScanJobStatus.COMPLETED:
        raise JobStateError(
            job_id, job.status.value, f"Scan job {job_id} is already completed"
        )

    with transaction(conn):
        settle_folders(conn, job_id, processed, FolderState.PROCESSED)
        settle_folders(conn, job_id, failed, FolderState.FAILED)
        counts = count_folders(conn, job_id)
        now = _utc_now_iso()
        values: dict = {
            "current_batch": job.current_batch + 1,
            "processed_count": counts[FolderState.PROCESSED],
            "failed_count": counts[FolderState.FAILED],
            "total_items_saved": job.total_items_saved + items_saved,
            "last_batch_at": now,
        }
        if counts[FolderState.PENDING] == 0:
            values["status"] = ScanJobStatus.COMPLETED
            values["completed_at"] = now
        update_scan_job(conn, job_id, **values)

    updated = _require_job(conn, job_id, "mark batch for")
    logger.info(
        "Batch %d/%d done for job %s: %d processed, %d failed, %d pending",
        updated.current_batch,
        updated.total_batches,
        job_id,
        len(processed),
        len(failed),
        len(updated.pending),
    )
    if updated.status is ScanJobStatus.COMPLETED:
        logger.info("Scan job %s completed", job_id)
    return updated


def fail_scan_job(conn: sqlite3.Connection, job_id: str, error_message: str) -> None:
    """Mark a job FAILED with an error message.

    A job that already completed is left alone.
    """
    job = _require_job(conn, job_id, "fail")
    if job.status is ScanJobStatus.COMPLETED:
        logger.warning("Not failing completed scan job %s", job_id)
        return
    with transaction(conn):
        update_scan_job(
            conn,
            job_id,
            status=ScanJobStatus.FAILED,
            error_message=error_message,
            completed_at=_utc_now_iso(),
        )
    logger.error("Scan job %s failed: %s", job_id, error_message)


def prepare_resume(conn: sqlite3.Connection, job_id: str) -> ScanJobRecord:
    """Reopen a PENDING or FAILED job so its remaining batches can run.

    Returns:
        The job, now IN_PROGRESS, with its remaining pending folders.

    Raises:
        JobNotFoundError: If the job doesn't exist.
        JobStateError: If the job is COMPLETED or already IN_PROGRESS.
    """
    job = _require_job(conn, job_id, "resume")
    if job.status is ScanJobStatus.COMPLETED:
        raise JobStateError(
            job_id, job.status.value, f"Scan job {job_id} is already completed"
        )
    if job.status is ScanJobStatus.IN_PROGRESS:
        raise JobStateError(
            job_id, job.status.value, f"Scan job {job_id} is already in progress"
        )

    with transaction(conn):
        values: dict = {
            "status": ScanJobStatus.IN_PROGRESS,
            "error_message": None,
            "completed_at": None,
        }
        if job.started_at is None:
            values["started_at"] = _utc_now_iso()
        update_scan_job(conn, job_id, **values)

    resumed = _require_job(conn, job_id, "resume")
    logger.info(
        "Resuming scan job %s: %d of %d folders pending",
        job_id,
        len(resumed.pending),
        resumed.total_folders,
    )
    return resumed


@dataclass(frozen=True)
class ScanJobStatusReport:
    """Progress snapshot of one scan job."""

    job_id: str
    library_id: int
    status: ScanJobStatus
    root_path: str
    media_type: MediaType
    total_folders: int
    processed_count: int
    failed_count: int
    pending_count: int
    current_batch: int
    total_batches: int
    total_items_saved: int
    percent_complete: int
    started_at: str | None
    last_batch_at: str | None
    completed_at: str | None
    error_message: str | None

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "library_id": self.library_id,
            "status": self.status.value,
            "root_path": self.root_path,
            "media_type": self.media_type.value,
            "progress": {
                "total_folders": self.total_folders,
                "processed": self.processed_count,
                "failed": self.failed_count,
                "pending": self.pending_count,
                "current_batch": self.current_batch,
                "total_batches": self.total_batches,
                "items_saved": self.total_items_saved,
                "percent_complete": self.percent_complete,
            },
            "timestamps": {
                "started_at": self.started_at,
                "last_batch_at": self.last_batch_at,
                "completed_at": self.completed_at,
            },
            "error_message": self.error_message,
        }


def get_scan_job_status(conn: sqlite3.Connection, job_id: str) -> ScanJobStatusReport:
    """Build a status report for a job.

    Raises:
        JobNotFoundError: If the job doesn't exist.
    """
    job = _require_job(conn, job_id, "get status of")
    settled = job.processed_count + job.failed_count
    percent = (
        math.floor(settled / job.total_folders * 100) if job.total_folders > 0 else 0
    )
    return ScanJobStatusReport(
        job_id=job.id,
        library_id=job.library_id,
        status=job.status,
        root_path=job.root_path,
        media_type=job.media_type,
        total_folders=job.total_folders,
        processed_count=job.processed_count,
        failed_count=job.failed_count,
        pending_count=len(job.pending),
        current_batch=job.current_batch,
        total_batches=job.total_batches,
        total_items_saved=job.total_items_saved,
        percent_complete=percent,
        started_at=job.started_at,
        last_batch_at=job.last_batch_at,
        completed_at=job.completed_at,
        error_message=job.error_message,
    )
