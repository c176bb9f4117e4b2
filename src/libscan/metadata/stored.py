"""Rebuild MediaMetadata from what a previous scan stored."""

from __future__ import annotations

import logging
import sqlite3

from libscan.db.queries import find_existing_metadata
from libscan.db.types import StoredMetadataRow
from libscan.metadata.images import image_path
from libscan.metadata.models import MediaMetadata

logger = logging.getLogger(__name__)


def metadata_from_row(row: StoredMetadataRow) -> MediaMetadata:
    """Convert a stored media row back into MediaMetadata.

    Stored image URLs are turned back into provider paths, so saving the
    result again writes identical values.
    """
    media = row.media
    return MediaMetadata(
        provider_id=row.provider_id,
        media_type=media.media_type,
        title=media.title,
        overview=media.description,
        poster_path=image_path(media.poster_url),
        backdrop_path=image_path(media.backdrop_url),
        release_date=media.release_date,
        rating=media.rating,
        runtime=row.duration,
        genres=list(row.genres),
        plain_poster_url=media.plain_poster_url,
        logo_url=media.logo_url,
    )


def load_stored_metadata(
    conn: sqlite3.Connection, provider_ids: list[str], library_id: int
) -> dict[str, MediaMetadata]:
    """Stored metadata for ``provider_ids`` within a library, keyed by id."""
    if not provider_ids:
        return {}
    rows = find_existing_metadata(conn, provider_ids, library_id)
    logger.info(
        "Found stored metadata for %d of %d provider id(s) in library %d",
        len(rows),
        len(set(provider_ids)),
        library_id,
    )
    return {row.provider_id: metadata_from_row(row) for row in rows}
