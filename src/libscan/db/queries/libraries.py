"""Library queries."""

import sqlite3

from libscan.db.types import LibraryRecord, MediaType

from .helpers import _row_to_library, _utc_now_iso


def upsert_library(
    conn: sqlite3.Connection,
    name: str,
    slug: str,
    library_path: str,
    media_type: MediaType,
) -> LibraryRecord:
    """Create a library or update the one with the same slug.

    Returns:
        The stored LibraryRecord.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    now = _utc_now_iso()
    row = conn.execute(
        """
        INSERT INTO libraries (
            name, slug, library_path, library_type, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(slug) DO UPDATE SET
            name = excluded.name,
            library_path = excluded.library_path,
            library_type = excluded.library_type,
            updated_at = excluded.updated_at
        RETURNING *
        """,
        (name, slug, library_path, media_type.record_type, now, now),
    ).fetchone()
    return _row_to_library(row)


def get_library(conn: sqlite3.Connection, library_id: int) -> LibraryRecord | None:
    """Get a library by id, or None."""
    row = conn.execute("SELECT * FROM libraries WHERE id = ?", (library_id,)).fetchone()
    return _row_to_library(row) if row else None


def library_exists(conn: sqlite3.Connection, library_id: int) -> bool:
    """Return True if a library with this id exists."""
    row = conn.execute("SELECT 1 FROM libraries WHERE id = ?", (library_id,)).fetchone()
    return row is not None
