"""Genre queries."""

import sqlite3


def upsert_genre(conn: sqlite3.Connection, name: str, slug: str) -> int:
    """Return the id of the genre with this slug, creating it if needed.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    row = conn.execute(
        """
        INSERT INTO genres (name, slug) VALUES (?, ?)
        ON CONFLICT(slug) DO UPDATE SET name = genres.name
        RETURNING id
        """,
        (name, slug),
    ).fetchone()
    return row["id"]


def link_media_genre(conn: sqlite3.Connection, media_id: int, genre_id: int) -> bool:
    """Link a genre to a media record.

    Returns:
        True if a new link was created, False if it already existed.
    """
    cursor = conn.execute(
        "INSERT OR IGNORE INTO media_genres (media_id, genre_id) VALUES (?, ?)",
        (media_id, genre_id),
    )
    return cursor.rowcount == 1


def get_media_genre_names(conn: sqlite3.Connection, media_id: int) -> list[str]:
    """Names of the genres linked to a media record, alphabetically."""
    rows = conn.execute(
        """
        SELECT g.name FROM genres g
        JOIN media_genres mg ON mg.genre_id = g.id
        WHERE mg.media_id = ?
        ORDER BY g.name
        """,
        (media_id,),
    ).fetchall()
    return [row["name"] for row in rows]
