"""Integration tests for the jobs command group."""

import json
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest
from click.testing import CliRunner

from libscan.cli import main
from libscan.config.models import LibscanConfig
from libscan.db.queries import get_scan_job, update_scan_job, upsert_library
from libscan.db.types import MediaType, ScanJobStatus
from libscan.jobs.controller import create_scan_job, mark_batch_processed

pytestmark = pytest.mark.integration


@pytest.fixture
def invoke(db_conn: sqlite3.Connection):
    runner = CliRunner()

    def _invoke(*args: str):
        obj = {"settings": LibscanConfig(), "db_conn": db_conn}
        return runner.invoke(main, list(args), obj=obj)

    return _invoke


@pytest.fixture
def jobs(db_conn: sqlite3.Connection) -> dict[str, str]:
    """One completed movie job and one TV job stuck for twelve hours."""
    movies = upsert_library(db_conn, "Movies", "movies", "/movies", MediaType.MOVIE)
    tv = upsert_library(db_conn, "TV", "tv", "/tv", MediaType.TV)
    db_conn.commit()

    done = create_scan_job(db_conn, movies.id, "/movies", MediaType.MOVIE, ["Alien"])
    mark_batch_processed(db_conn, done.id, ["Alien"], [], items_saved=1)

    stuck = create_scan_job(
        db_conn, tv.id, "/tv", MediaType.TV, ["Bluey", "Gravity Falls"], batch_size=1
    )
    started = (datetime.now(timezone.utc) - timedelta(hours=12)).isoformat()
    update_scan_job(
        db_conn, stuck.id, status=ScanJobStatus.IN_PROGRESS, started_at=started
    )
    db_conn.commit()
    return {"completed": done.id, "stuck": stuck.id}


class TestJobsList:
    """Tests for libscan jobs list."""

    def test_empty(self, invoke):
        result = invoke("jobs", "list")
        assert result.exit_code == 0
        assert "No scan jobs found." in result.output

    def test_table(self, invoke, jobs):
        result = invoke("jobs", "list")

        assert result.exit_code == 0, result.output
        assert jobs["completed"][:8] in result.output
        assert jobs["stuck"][:8] in result.output
        assert "IN_PROGRESS" in result.output

    def test_status_filter_json(self, invoke, jobs):
        result = invoke("jobs", "list", "--status", "completed", "--json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [job["id"] for job in data] == [jobs["completed"]]
        assert data[0]["processed"] == 1
        assert data[0]["media_type"] == "movie"


class TestJobsStatus:
    """Tests for libscan jobs status."""

    def test_text(self, invoke, jobs):
        result = invoke("jobs", "status", jobs["completed"])

        assert result.exit_code == 0, result.output
        assert "Progress:  100%" in result.output
        assert "Batches:   1/1" in result.output

    def test_json(self, invoke, jobs):
        result = invoke("jobs", "status", jobs["stuck"], "--json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["status"] == "IN_PROGRESS"
        assert data["progress"]["pending"] == 2
        assert data["progress"]["total_batches"] == 2

    def test_unknown_job(self, invoke):
        result = invoke("jobs", "status", "missing")
        assert result.exit_code == 1
        assert "not found" in result.output


class TestJobsSweep:
    """Tests for libscan jobs sweep."""

    def test_sweeps_stale_job(self, invoke, jobs, db_conn):
        result = invoke("jobs", "sweep")

        assert result.exit_code == 0, result.output
        assert "Marked 1 stale scan job(s) as failed:" in result.output
        assert jobs["stuck"] in result.output
        assert get_scan_job(db_conn, jobs["stuck"]).status is ScanJobStatus.FAILED
        assert get_scan_job(db_conn, jobs["completed"]).status is ScanJobStatus.COMPLETED

    def test_longer_threshold_keeps_job(self, invoke, jobs):
        result = invoke("jobs", "sweep", "--hours", "24")

        assert result.exit_code == 0, result.output
        assert "No stale scan jobs." in result.output

    def test_rejects_zero_hours(self, invoke):
        result = invoke("jobs", "sweep", "--hours", "0")
        assert result.exit_code == 2
