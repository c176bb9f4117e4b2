"""Media, external id, and type-specific record queries.

Every function here is keyed by a stable identifier so repeated calls
with the same input update rather than duplicate.
"""

import sqlite3
from typing import Any

from libscan.db.types import (
    ExternalIdSource,
    MediaRecord,
    MediaType,
    StoredMetadataRow,
)

from .genres import get_media_genre_names
from .helpers import _placeholders, _row_to_media, _utc_now_iso

# Columns of the media table a scan may write (prevent SQL injection)
MEDIA_UPDATABLE_COLUMNS = frozenset(
    {
        "title",
        "description",
        "poster_url",
        "plain_poster_url",
        "backdrop_url",
        "logo_url",
        "release_date",
        "rating",
    }
)

EPISODE_COLUMNS = (
    "title",
    "file_title",
    "duration",
    "air_date",
    "still_path",
    "file_path",
    "file_size",
    "file_modified_at",
)


def _check_columns(fields: dict[str, Any]) -> None:
    unknown = set(fields) - MEDIA_UPDATABLE_COLUMNS
    if unknown:
        raise ValueError(f"Unknown media columns: {sorted(unknown)}")


# ==========================================================================
# Media
# ==========================================================================


def find_media_by_external_id(
    conn: sqlite3.Connection, source: ExternalIdSource, external_id: str
) -> MediaRecord | None:
    """Find the media record an external id points at."""
    row = conn.execute(
        """
        SELECT m.* FROM media m
        JOIN external_ids e ON e.media_id = m.id
        WHERE e.source = ? AND e.external_id = ?
        """,
        (source.value, external_id),
    ).fetchone()
    return _row_to_media(row) if row else None


def get_media(conn: sqlite3.Connection, media_id: int) -> MediaRecord | None:
    """Get a media record by id."""
    row = conn.execute("SELECT * FROM media WHERE id = ?", (media_id,)).fetchone()
    return _row_to_media(row) if row else None


def insert_media(
    conn: sqlite3.Connection, media_type: MediaType, fields: dict[str, Any]
) -> int:
    """Insert a media record.

    Args:
        conn: Database connection.
        media_type: Movie or TV show.
        fields: Column values; keys must be in MEDIA_UPDATABLE_COLUMNS.

    Returns:
        The new media id.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    _check_columns(fields)
    now = _utc_now_iso()
    columns = ["media_type", *fields, "created_at", "updated_at"]
    values = [media_type.record_type, *fields.values(), now, now]
    cursor = conn.execute(
        f"INSERT INTO media ({', '.join(columns)}) "  # nosec B608
        f"VALUES ({_placeholders(len(columns))})",
        values,
    )
    return cursor.lastrowid


def update_media(
    conn: sqlite3.Connection, media_id: int, fields: dict[str, Any]
) -> bool:
    """Update a media record's columns when any value differs.

    ``updated_at`` only advances when a stored value actually changes, so
    re-saving identical metadata leaves the record untouched.

    Returns:
        True if the row was modified.
    """
    _check_columns(fields)
    if not fields:
        return False
    assignments = ", ".join(f"{column} = ?" for column in fields)
    differs = " OR ".join(f"{column} IS NOT ?" for column in fields)
    values = list(fields.values())
    cursor = conn.execute(
        f"UPDATE media SET {assignments}, updated_at = ? "  # nosec B608
        f"WHERE id = ? AND ({differs})",
        [*values, _utc_now_iso(), media_id, *values],
    )
    return cursor.rowcount == 1


# ==========================================================================
# External ids
# ==========================================================================


def insert_external_id(
    conn: sqlite3.Connection,
    media_id: int,
    source: ExternalIdSource,
    external_id: str,
) -> None:
    """Attach an external id to a new media record."""
    conn.execute(
        "INSERT INTO external_ids (media_id, source, external_id) VALUES (?, ?, ?)",
        (media_id, source.value, external_id),
    )


def upsert_external_id(
    conn: sqlite3.Connection,
    media_id: int,
    source: ExternalIdSource,
    external_id: str,
) -> None:
    """Create or re-point an external id at ``media_id``."""
    conn.execute(
        """
        INSERT INTO external_ids (media_id, source, external_id) VALUES (?, ?, ?)
        ON CONFLICT(source, external_id) DO UPDATE SET media_id = excluded.media_id
        """,
        (media_id, source.value, external_id),
    )


def find_existing_metadata(
    conn: sqlite3.Connection, provider_ids: list[str], library_id: int
) -> list[StoredMetadataRow]:
    """Find stored media for provider (TMDB) ids linked to a library.

    Args:
        conn: Database connection.
        provider_ids: TMDB ids to look up.
        library_id: Only media linked to this library are returned.

    Returns:
        One StoredMetadataRow per id found, with genres and movie
        duration attached.
    """
    if not provider_ids:
        return []
    unique_ids = list(dict.fromkeys(provider_ids))
    rows = conn.execute(
        f"""
        SELECT e.external_id AS provider_id, mv.duration AS duration, m.*
        FROM external_ids e
        JOIN media m ON m.id = e.media_id
        JOIN media_libraries ml ON ml.media_id = m.id AND ml.library_id = ?
        LEFT JOIN movies mv ON mv.media_id = m.id
        WHERE e.source = 'TMDB'
          AND e.external_id IN ({_placeholders(len(unique_ids))})
        """,  # nosec B608
        [library_id, *unique_ids],
    ).fetchall()
    return [
        StoredMetadataRow(
            provider_id=row["provider_id"],
            media=_row_to_media(row),
            genres=get_media_genre_names(conn, row["id"]),
            duration=row["duration"],
        )
        for row in rows
    ]


# ==========================================================================
# Movies and people
# ==========================================================================


def upsert_movie(
    conn: sqlite3.Connection,
    media_id: int,
    duration: int | None,
    file_path: str,
    file_size: int | None,
    file_modified_at: str | None,
) -> int:
    """Create or update the movie record for ``media_id``.

    Returns:
        The movie id.
    """
    row = conn.execute(
        """
        INSERT INTO movies (media_id, duration, file_path, file_size, file_modified_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(media_id) DO UPDATE SET
            duration = excluded.duration,
            file_path = excluded.file_path,
            file_size = excluded.file_size,
            file_modified_at = excluded.file_modified_at
        RETURNING id
        """,
        (media_id, duration, file_path, file_size, file_modified_at),
    ).fetchone()
    return row["id"]


def get_movie_by_media_id(conn: sqlite3.Connection, media_id: int) -> dict | None:
    """Return the movie row for a media record as a dict, or None."""
    row = conn.execute("SELECT * FROM movies WHERE media_id = ?", (media_id,)).fetchone()
    return dict(row) if row else None


def upsert_person(
    conn: sqlite3.Connection,
    person_id: str,
    name: str,
    profile_url: str | None = None,
) -> None:
    """Create or update a person keyed by provider person id."""
    conn.execute(
        """
        INSERT INTO people (id, name, profile_url) VALUES (?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            profile_url = COALESCE(excluded.profile_url, people.profile_url)
        """,
        (person_id, name, profile_url),
    )


def link_media_person(
    conn: sqlite3.Connection, media_id: int, person_id: str, role: str
) -> bool:
    """Link a person to a media record in a role. Returns True if new."""
    cursor = conn.execute(
        "INSERT OR IGNORE INTO media_people (media_id, person_id, role) "
        "VALUES (?, ?, ?)",
        (media_id, person_id, role),
    )
    return cursor.rowcount == 1


# ==========================================================================
# TV shows, seasons, episodes
# ==========================================================================


def upsert_tv_show(conn: sqlite3.Connection, media_id: int) -> int:
    """Return the TV show id for ``media_id``, creating it if needed."""
    row = conn.execute(
        """
        INSERT INTO tv_shows (media_id) VALUES (?)
        ON CONFLICT(media_id) DO UPDATE SET media_id = excluded.media_id
        RETURNING id
        """,
        (media_id,),
    ).fetchone()
    return row["id"]


def upsert_season(conn: sqlite3.Connection, tv_show_id: int, season_number: int) -> int:
    """Return the season id for (show, number), creating it if needed."""
    row = conn.execute(
        """
        INSERT INTO seasons (tv_show_id, season_number) VALUES (?, ?)
        ON CONFLICT(tv_show_id, season_number) DO UPDATE
            SET season_number = excluded.season_number
        RETURNING id
        """,
        (tv_show_id, season_number),
    ).fetchone()
    return row["id"]


def upsert_episode(
    conn: sqlite3.Connection,
    season_id: int,
    episode_number: int,
    fields: dict[str, Any],
) -> int:
    """Create or update the episode (season, number).

    Args:
        conn: Database connection.
        season_id: Parent season id.
        episode_number: Episode number within the season.
        fields: Values for EPISODE_COLUMNS; ``title`` is required.

    Returns:
        The episode id.
    """
    unknown = set(fields) - set(EPISODE_COLUMNS)
    if unknown:
        raise ValueError(f"Unknown episode columns: {sorted(unknown)}")
    columns = list(fields)
    updates = ", ".join(f"{column} = excluded.{column}" for column in columns)
    row = conn.execute(
        f"""
        INSERT INTO episodes (season_id, episode_number, {', '.join(columns)})
        VALUES ({_placeholders(len(columns) + 2)})
        ON CONFLICT(season_id, episode_number) DO UPDATE SET {updates}
        RETURNING id
        """,  # nosec B608
        [season_id, episode_number, *fields.values()],
    ).fetchone()
    return row["id"]


def get_episode(
    conn: sqlite3.Connection, tv_show_media_id: int, season: int, episode: int
) -> dict | None:
    """Return an episode row of a show (by media id) as a dict, or None."""
    row = conn.execute(
        """
        SELECT ep.* FROM episodes ep
        JOIN seasons s ON s.id = ep.season_id
        JOIN tv_shows t ON t.id = s.tv_show_id
        WHERE t.media_id = ? AND s.season_number = ? AND ep.episode_number = ?
        """,
        (tv_show_media_id, season, episode),
    ).fetchone()
    return dict(row) if row else None


# ==========================================================================
# Library links
# ==========================================================================


def link_media_library(
    conn: sqlite3.Connection, media_id: int, library_id: int
) -> bool:
    """Link a media record to a library. Returns True if the link is new."""
    cursor = conn.execute(
        "INSERT OR IGNORE INTO media_libraries (media_id, library_id, created_at) "
        "VALUES (?, ?, ?)",
        (media_id, library_id, _utc_now_iso()),
    )
    return cursor.rowcount == 1


def count_library_links(conn: sqlite3.Connection, media_id: int) -> int:
    """Number of libraries a media record is linked to."""
    row = conn.execute(
        "SELECT COUNT(*) FROM media_libraries WHERE media_id = ?", (media_id,)
    ).fetchone()
    return row[0]
