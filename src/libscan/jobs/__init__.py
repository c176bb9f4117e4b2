"""Batched scan jobs: checkpointed state machine and housekeeping."""

from libscan.jobs.controller import (
    ScanJobStatusReport,
    batch_size_for,
    create_scan_job,
    fail_scan_job,
    get_next_batch,
    get_scan_job_status,
    mark_batch_processed,
    prepare_resume,
    start_scan_job,
)
from libscan.jobs.exceptions import JobNotFoundError, JobStateError, ScanJobError
from libscan.jobs.maintenance import cleanup_stale_scan_jobs
from libscan.jobs.sweeper import StaleJobSweepTask

__all__ = [
    "JobNotFoundError",
    "JobStateError",
    "ScanJobError",
    "ScanJobStatusReport",
    "StaleJobSweepTask",
    "batch_size_for",
    "cleanup_stale_scan_jobs",
    "create_scan_job",
    "fail_scan_job",
    "get_next_batch",
    "get_scan_job_status",
    "mark_batch_processed",
    "prepare_resume",
    "start_scan_job",
]
