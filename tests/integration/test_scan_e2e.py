"""End-to-end scans of temporary library trees with a fake provider."""

import json
import sqlite3
from pathlib import Path

import pytest

from libscan.config.models import LibscanConfig, ScanDefaultsConfig
from libscan.db.queries import (
    count_library_links,
    find_media_by_external_id,
    get_movie_by_media_id,
    get_scan_job,
    upsert_library,
)
from libscan.db.types import ExternalIdSource, MediaType, ScanJobStatus
from libscan.jobs.controller import create_scan_job, fail_scan_job
from libscan.jobs.exceptions import JobStateError
from libscan.library.path_mapping import PathMapper
from libscan.metadata.rate_limit import RateLimiter
from libscan.scanner.config import ScanConfig
from libscan.scanner.exceptions import ScanValidationError
from libscan.scanner import orchestrator as orchestrator_module
from libscan.scanner.orchestrator import ROOT_FOLDER, ScanOrchestrator
from libscan.scanner.progress import RecordingProgressSink, ScanPhase

from fakes import FakeProvider, movie_metadata, season, show_metadata
from helpers import make_files

pytestmark = pytest.mark.integration

INCEPTION = "Inception (2010) {tmdb-27205}"
INTERSTELLAR = "Interstellar (2014) {tmdb-157336}"
GRAVITY = "Gravity Falls {tmdb-40075}"
BLUEY = "Bluey {tmdb-82728}"


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(
        metadata={
            "27205": movie_metadata(),
            "157336": movie_metadata("157336", "Interstellar"),
            "40075": show_metadata("40075", "Gravity Falls"),
            "82728": show_metadata("82728", "Bluey"),
        },
        seasons={
            ("40075", 1): season("40075", 1, 2),
            ("82728", 1): season("82728", 1, 3),
        },
    )


@pytest.fixture
def progress() -> RecordingProgressSink:
    return RecordingProgressSink()


@pytest.fixture
def orchestrator(db_conn: sqlite3.Connection, provider, progress, temp_dir: Path):
    settings = LibscanConfig(scan=ScanDefaultsConfig(scan_log_dir=temp_dir / "logs"))
    return ScanOrchestrator(
        db_conn,
        provider,
        settings=settings,
        rate_limiter=RateLimiter(max_requests=1000),
        progress=progress,
        path_mapper=PathMapper(in_container=False),
        check_layout=False,
    )


class TestMovieScan:
    """Full-mode movie scans."""

    @pytest.mark.asyncio
    async def test_scan_saves_and_logs(
        self, orchestrator, media_root, db_conn, provider, progress
    ):
        (movie_file, _) = make_files(
            media_root, f"{INCEPTION}/Inception.mkv", f"{INCEPTION}/notes.txt", size=64
        )

        summary = await orchestrator.scan(str(media_root), ScanConfig.create("movie"))

        assert summary.total_files == 1
        assert summary.total_saved == 1
        assert summary.metadata_from_provider == 1
        assert summary.metadata_from_cache == 0
        assert summary.job_id is None

        media = find_media_by_external_id(db_conn, ExternalIdSource.TMDB, "27205")
        assert media.title == "Inception"
        assert count_library_links(db_conn, media.id) == 1
        movie = get_movie_by_media_id(db_conn, media.id)
        assert Path(movie["file_path"]).resolve() == movie_file.resolve()
        assert movie["file_size"] == 64
        assert movie["duration"] == 148

        assert progress.phases[0] is ScanPhase.STARTING
        assert progress.phases[-1] is ScanPhase.COMPLETE
        assert ScanPhase.SAVING in progress.phases

        log = json.loads(summary.scan_log_path.read_text())
        assert log["summary"]["total_files"] == 1
        assert log["summary"]["saved"] == 1

    @pytest.mark.asyncio
    async def test_rescan_uses_stored_metadata(
        self, orchestrator, media_root, db_conn, provider
    ):
        make_files(media_root, f"{INCEPTION}/Inception.mkv")
        config = ScanConfig.create("movie")
        await orchestrator.scan(str(media_root), config)
        before = find_media_by_external_id(db_conn, ExternalIdSource.TMDB, "27205")

        summary = await orchestrator.scan(str(media_root), config)

        assert summary.metadata_from_cache == 1
        assert summary.metadata_from_provider == 0
        assert summary.total_saved == 1
        assert provider.calls["get_metadata"] == 1
        after = find_media_by_external_id(db_conn, ExternalIdSource.TMDB, "27205")
        assert after.id == before.id
        assert after.updated_at == before.updated_at

    @pytest.mark.asyncio
    async def test_forced_rescan_refetches(self, orchestrator, media_root, provider):
        make_files(media_root, f"{INCEPTION}/Inception.mkv")
        await orchestrator.scan(str(media_root), ScanConfig.create("movie"))

        summary = await orchestrator.scan(
            str(media_root), ScanConfig.create("movie", rescan=True)
        )

        assert summary.metadata_from_provider == 1
        assert provider.calls["get_metadata"] == 2

    @pytest.mark.asyncio
    async def test_batched_movies_include_root_files(
        self, orchestrator, media_root, db_conn
    ):
        make_files(media_root, f"{INCEPTION}.mkv", f"{INTERSTELLAR}/Interstellar.mkv")

        summary = await orchestrator.scan(
            str(media_root), ScanConfig.create("movie", batched=True)
        )

        assert summary.total_saved == 2
        assert summary.folders_processed == 2
        job = get_scan_job(db_conn, summary.job_id)
        assert job.status is ScanJobStatus.COMPLETED
        assert job.processed == [ROOT_FOLDER, INTERSTELLAR]

    @pytest.mark.asyncio
    async def test_missing_path_reports_error(self, orchestrator, temp_dir, progress):
        with pytest.raises(ScanValidationError):
            await orchestrator.scan(
                str(temp_dir / "missing"), ScanConfig.create("movie")
            )
        assert progress.phases[-1] is ScanPhase.ERROR


class TestTvScan:
    """Batched TV scans."""

    @pytest.mark.asyncio
    async def test_batches_and_isolates_provider_failures(
        self, orchestrator, media_root, db_conn, provider, progress
    ):
        make_files(
            media_root,
            f"{GRAVITY}/Season 1/S01E01.mkv",
            f"{GRAVITY}/Season 1/S01E02.mkv",
            f"{BLUEY}/Season 1/S01E01.mkv",
        )
        provider.fail_ids = {"82728"}

        summary = await orchestrator.scan(str(media_root), ScanConfig.create("tv"))

        assert summary.total_files == 3
        assert summary.total_saved == 2
        assert summary.skipped == 1
        assert summary.metadata_failed == 1
        assert summary.folders_processed == 2
        assert summary.folders_failed == 0

        job = get_scan_job(db_conn, summary.job_id)
        assert job.status is ScanJobStatus.COMPLETED
        assert job.processed == [BLUEY, GRAVITY]
        assert job.total_items_saved == 2

        finished = [
            e.batch_item_complete["folder_name"]
            for e in progress.events
            if e.batch_item_complete
        ]
        assert finished == [BLUEY, GRAVITY]

    @pytest.mark.asyncio
    async def test_unreadable_folder_fails_alone(
        self, db_conn, provider, progress, media_root, temp_dir, monkeypatch
    ):
        """A folder whose walk keeps failing is marked failed; the job completes."""
        make_files(
            media_root,
            f"{GRAVITY}/Season 1/S01E01.mkv",
            f"{BLUEY}/Season 1/S01E01.mkv",
            f"{BLUEY}/Season 1/S01E02.mkv",
        )
        real_walk = orchestrator_module.walk

        async def flaky_walk(root, config, start=None, recurse=True):
            if start is not None and Path(start).name == GRAVITY:
                raise OSError("Input/output error")
            return await real_walk(root, config, start, recurse)

        monkeypatch.setattr(orchestrator_module, "walk", flaky_walk)
        orchestrator = ScanOrchestrator(
            db_conn,
            provider,
            settings=LibscanConfig(
                scan=ScanDefaultsConfig(
                    scan_log_dir=temp_dir / "logs", folder_retries=0
                )
            ),
            rate_limiter=RateLimiter(max_requests=1000),
            progress=progress,
            path_mapper=PathMapper(in_container=False),
            check_layout=False,
        )

        summary = await orchestrator.scan(str(media_root), ScanConfig.create("tv"))

        assert summary.folders_failed == 1
        assert summary.folders_processed == 1
        assert summary.total_saved == 2
        job = get_scan_job(db_conn, summary.job_id)
        assert job.status is ScanJobStatus.COMPLETED
        assert job.processed == [BLUEY]
        assert job.failed == [GRAVITY]
        assert job.total_items_saved == 2
        assert find_media_by_external_id(db_conn, ExternalIdSource.TMDB, "40075") is None

    @pytest.mark.asyncio
    async def test_resume_processes_remaining_folders(
        self, orchestrator, media_root, db_conn, provider
    ):
        make_files(
            media_root,
            f"{GRAVITY}/Season 1/S01E01.mkv",
            f"{BLUEY}/Season 1/S01E02.mkv",
        )
        library = upsert_library(
            db_conn, "Shows", "shows", str(media_root), MediaType.TV
        )
        db_conn.commit()
        job = create_scan_job(
            db_conn, library.id, str(media_root), MediaType.TV, [BLUEY, GRAVITY]
        )
        fail_scan_job(db_conn, job.id, "interrupted")

        summary = await orchestrator.resume(job.id)

        assert summary.job_id == job.id
        assert summary.library_name == "Shows"
        assert summary.total_saved == 2
        assert get_scan_job(db_conn, job.id).status is ScanJobStatus.COMPLETED
        assert provider.calls["get_season"] == 2

        with pytest.raises(JobStateError):
            await orchestrator.resume(job.id)
