"""Tests for the stale scan job sweep."""

from datetime import datetime, timedelta, timezone

import pytest

from libscan.db.queries import get_scan_job, update_scan_job, upsert_library
from libscan.db.types import MediaType, ScanJobStatus
from libscan.jobs.controller import create_scan_job, prepare_resume
from libscan.jobs.maintenance import cleanup_stale_scan_jobs

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _iso(hours_ago: float) -> str:
    return (NOW - timedelta(hours=hours_ago)).isoformat()


@pytest.fixture
def make_job(db_conn):
    library = upsert_library(db_conn, "TV", "tv", "/tv", MediaType.TV)
    db_conn.commit()

    def _make(status=ScanJobStatus.IN_PROGRESS, **timestamps) -> str:
        job = create_scan_job(db_conn, library.id, "/tv", MediaType.TV, ["Show"])
        update_scan_job(db_conn, job.id, status=status, **timestamps)
        db_conn.commit()
        return job.id

    return _make


class TestCleanupStaleScanJobs:
    """Failing jobs with no batch activity."""

    def test_quiet_job_failed(self, db_conn, make_job):
        job_id = make_job(started_at=_iso(10), last_batch_at=_iso(7))

        assert cleanup_stale_scan_jobs(db_conn, 6, now=NOW) == [job_id]

        job = get_scan_job(db_conn, job_id)
        assert job.status is ScanJobStatus.FAILED
        assert "timed out after 6 hours" in job.error_message
        assert job.completed_at is not None

    def test_recent_batch_keeps_job_alive(self, db_conn, make_job):
        job_id = make_job(started_at=_iso(10), last_batch_at=_iso(1))

        assert cleanup_stale_scan_jobs(db_conn, 6, now=NOW) == []
        assert get_scan_job(db_conn, job_id).status is ScanJobStatus.IN_PROGRESS

    def test_start_time_used_without_batches(self, db_conn, make_job):
        stale = make_job(started_at=_iso(8))
        fresh = make_job(started_at=_iso(2))

        assert cleanup_stale_scan_jobs(db_conn, 6, now=NOW) == [stale]
        assert get_scan_job(db_conn, fresh).status is ScanJobStatus.IN_PROGRESS

    def test_only_in_progress_jobs(self, db_conn, make_job):
        make_job(status=ScanJobStatus.PENDING, started_at=_iso(50))
        make_job(status=ScanJobStatus.COMPLETED, last_batch_at=_iso(50))
        make_job(status=ScanJobStatus.FAILED, last_batch_at=_iso(50))

        assert cleanup_stale_scan_jobs(db_conn, 6, now=NOW) == []

    def test_repeat_is_noop(self, db_conn, make_job):
        make_job(started_at=_iso(8))
        assert len(cleanup_stale_scan_jobs(db_conn, 6, now=NOW)) == 1
        assert cleanup_stale_scan_jobs(db_conn, 6, now=NOW) == []

    def test_swept_job_can_resume(self, db_conn, make_job):
        job_id = make_job(started_at=_iso(8))
        cleanup_stale_scan_jobs(db_conn, 6, now=NOW)

        resumed = prepare_resume(db_conn, job_id)
        assert resumed.status is ScanJobStatus.IN_PROGRESS
        assert resumed.pending == ["Show"]

    def test_fractional_hours_in_message(self, db_conn, make_job):
        job_id = make_job(started_at=_iso(1))
        cleanup_stale_scan_jobs(db_conn, 0.5, now=NOW)
        assert "after 0.5 hours" in get_scan_job(db_conn, job_id).error_message

    @pytest.mark.parametrize("hours", [0, -1])
    def test_rejects_non_positive_timeout(self, db_conn, hours):
        with pytest.raises(ValueError, match="positive"):
            cleanup_stale_scan_jobs(db_conn, hours, now=NOW)
