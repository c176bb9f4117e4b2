"""Scan job checkpoint queries.

A job's folder names live in scan_job_folders, one row per folder with a
state column, so the pending/processed/failed lists always partition the
discovered folder set.
"""

import sqlite3

from libscan.db.types import FolderState, ScanJobRecord, ScanJobStatus

from .helpers import _placeholders, _row_to_scan_job, _utc_now_iso

# Whitelist of scan_jobs columns update_scan_job may set
UPDATABLE_JOB_COLUMNS = frozenset(
    {
        "status",
        "current_batch",
        "processed_count",
        "failed_count",
        "total_items_saved",
        "started_at",
        "last_batch_at",
        "completed_at",
        "error_message",
    }
)


def insert_scan_job(
    conn: sqlite3.Connection,
    job: ScanJobRecord,
    folders: list[str],
) -> str:
    """Insert a scan job and its folders, all pending, in discovery order.

    Returns:
        The job id.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    conn.execute(
        """
        INSERT INTO scan_jobs (
            id, library_id, root_path, media_type, status, batch_size,
            total_folders, total_batches, current_batch, processed_count,
            failed_count, total_items_saved, started_at, last_batch_at,
            completed_at, error_message, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            job.id,
            job.library_id,
            job.root_path,
            job.media_type.value,
            job.status.value,
            job.batch_size,
            job.total_folders,
            job.total_batches,
            job.current_batch,
            job.processed_count,
            job.failed_count,
            job.total_items_saved,
            job.started_at,
            job.last_batch_at,
            job.completed_at,
            job.error_message,
            job.created_at,
            job.updated_at,
        ),
    )
    conn.executemany(
        "INSERT INTO scan_job_folders (job_id, name, position, state) "
        "VALUES (?, ?, ?, 'pending')",
        [(job.id, name, position) for position, name in enumerate(folders)],
    )
    return job.id


def _load_folders(conn: sqlite3.Connection, job: ScanJobRecord) -> ScanJobRecord:
    rows = conn.execute(
        """
        SELECT name, state FROM scan_job_folders
        WHERE job_id = ?
        ORDER BY COALESCE(settled_seq, -1), position
        """,
        (job.id,),
    ).fetchall()
    by_state: dict[str, list[str]] = {state.value: [] for state in FolderState}
    for row in rows:
        by_state[row["state"]].append(row["name"])
    job.pending = by_state[FolderState.PENDING.value]
    job.processed = by_state[FolderState.PROCESSED.value]
    job.failed = by_state[FolderState.FAILED.value]
    return job


def get_scan_job(conn: sqlite3.Connection, job_id: str) -> ScanJobRecord | None:
    """Get a scan job with its folder lists, or None."""
    row = conn.execute("SELECT * FROM scan_jobs WHERE id = ?", (job_id,)).fetchone()
    if row is None:
        return None
    return _load_folders(conn, _row_to_scan_job(row))


def list_scan_jobs(
    conn: sqlite3.Connection,
    status: ScanJobStatus | None = None,
    library_id: int | None = None,
    limit: int = 50,
) -> list[ScanJobRecord]:
    """List scan jobs, newest first. Folder lists are not loaded."""
    conditions = []
    params: list = []
    if status is not None:
        conditions.append("status = ?")
        params.append(status.value)
    if library_id is not None:
        conditions.append("library_id = ?")
        params.append(library_id)
    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    rows = conn.execute(
        f"SELECT * FROM scan_jobs {where} ORDER BY created_at DESC LIMIT ?",  # nosec B608
        [*params, limit],
    ).fetchall()
    return [_row_to_scan_job(row) for row in rows]


def get_pending_folders(
    conn: sqlite3.Connection, job_id: str, limit: int | None = None
) -> list[str]:
    """Pending folder names in discovery order, at most ``limit``."""
    sql = (
        "SELECT name FROM scan_job_folders WHERE job_id = ? AND state = 'pending' "
        "ORDER BY position"
    )
    params: list = [job_id]
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    return [row["name"] for row in conn.execute(sql, params).fetchall()]


def settle_folders(
    conn: sqlite3.Connection,
    job_id: str,
    names: list[str],
    state: FolderState,
) -> int:
    """Move pending folders to ``state``, preserving the order given.

    Names that are not pending (unknown or already settled) are ignored.

    Returns:
        Number of folders moved.
    """
    if not names or state is FolderState.PENDING:
        return 0
    row = conn.execute(
        "SELECT COALESCE(MAX(settled_seq), -1) FROM scan_job_folders WHERE job_id = ?",
        (job_id,),
    ).fetchone()
    next_seq = row[0] + 1
    moved = 0
    for name in names:
        cursor = conn.execute(
            """
            UPDATE scan_job_folders SET state = ?, settled_seq = ?
            WHERE job_id = ? AND name = ? AND state = 'pending'
            """,
            (state.value, next_seq + moved, job_id, name),
        )
        moved += cursor.rowcount
    return moved


def count_folders(conn: sqlite3.Connection, job_id: str) -> dict[FolderState, int]:
    """Folder counts per state."""
    rows = conn.execute(
        "SELECT state, COUNT(*) AS n FROM scan_job_folders "
        "WHERE job_id = ? GROUP BY state",
        (job_id,),
    ).fetchall()
    counts = {state: 0 for state in FolderState}
    for row in rows:
        counts[FolderState(row["state"])] = row["n"]
    return counts


def update_scan_job(conn: sqlite3.Connection, job_id: str, **values) -> bool:
    """Set columns on a scan job and bump updated_at.

    Args:
        conn: Database connection.
        job_id: Job UUID.
        **values: Column values; keys must be in UPDATABLE_JOB_COLUMNS.
            ScanJobStatus values are stored by their value.

    Returns:
        True if the job exists.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    unknown = set(values) - UPDATABLE_JOB_COLUMNS
    if unknown:
        raise ValueError(f"Unknown scan job columns: {sorted(unknown)}")
    columns = list(values)
    params = [v.value if isinstance(v, ScanJobStatus) else v for v in values.values()]
    assignments = ", ".join(f"{column} = ?" for column in [*columns, "updated_at"])
    cursor = conn.execute(
        f"UPDATE scan_jobs SET {assignments} WHERE id = ?",  # nosec B608
        [*params, _utc_now_iso(), job_id],
    )
    return cursor.rowcount == 1


def find_stale_scan_jobs(conn: sqlite3.Connection, cutoff_iso: str) -> list[str]:
    """Ids of IN_PROGRESS jobs with no batch activity since ``cutoff_iso``.

    A job that never finished a batch is judged by its start time.
    """
    rows = conn.execute(
        """
        SELECT id FROM scan_jobs
        WHERE status = 'IN_PROGRESS'
          AND (
            (last_batch_at IS NOT NULL AND last_batch_at < ?)
            OR (last_batch_at IS NULL AND started_at < ?)
          )
        """,
        (cutoff_iso, cutoff_iso),
    ).fetchall()
    return [row["id"] for row in rows]


def fail_scan_jobs(
    conn: sqlite3.Connection, job_ids: list[str], error_message: str
) -> int:
    """Mark the given IN_PROGRESS jobs FAILED. Returns the number changed."""
    if not job_ids:
        return 0
    now = _utc_now_iso()
    cursor = conn.execute(
        f"""
        UPDATE scan_jobs
        SET status = 'FAILED', error_message = ?, completed_at = ?, updated_at = ?
        WHERE status = 'IN_PROGRESS' AND id IN ({_placeholders(len(job_ids))})
        """,  # nosec B608
        [error_message, now, now, *job_ids],
    )
    return cursor.rowcount
