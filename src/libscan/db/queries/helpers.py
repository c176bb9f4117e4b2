"""Shared helpers for query modules: timestamps and row mapping."""

import sqlite3
from datetime import datetime, timezone

from libscan.db.types import (
    LibraryRecord,
    MediaRecord,
    MediaType,
    ScanJobRecord,
    ScanJobStatus,
)


def _utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _placeholders(count: int) -> str:
    """Return "?, ?, ..." for an IN clause of ``count`` values."""
    return ", ".join("?" for _ in range(count))


def _row_to_library(row: sqlite3.Row) -> LibraryRecord:
    return LibraryRecord(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        library_path=row["library_path"],
        media_type=MediaType.from_record_type(row["library_type"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_media(row: sqlite3.Row) -> MediaRecord:
    return MediaRecord(
        id=row["id"],
        media_type=MediaType.from_record_type(row["media_type"]),
        title=row["title"],
        description=row["description"],
        poster_url=row["poster_url"],
        plain_poster_url=row["plain_poster_url"],
        backdrop_url=row["backdrop_url"],
        logo_url=row["logo_url"],
        release_date=row["release_date"],
        rating=row["rating"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_scan_job(row: sqlite3.Row) -> ScanJobRecord:
    """Map a scan_jobs row. Folder lists are filled in by the caller."""
    return ScanJobRecord(
        id=row["id"],
        library_id=row["library_id"],
        root_path=row["root_path"],
        media_type=MediaType(row["media_type"]),
        status=ScanJobStatus(row["status"]),
        batch_size=row["batch_size"],
        total_folders=row["total_folders"],
        total_batches=row["total_batches"],
        current_batch=row["current_batch"],
        processed_count=row["processed_count"],
        failed_count=row["failed_count"],
        total_items_saved=row["total_items_saved"],
        started_at=row["started_at"],
        last_batch_at=row["last_batch_at"],
        completed_at=row["completed_at"],
        error_message=row["error_message"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
