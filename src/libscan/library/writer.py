"""Persist resolved media entries.

Every step keys on a stable identifier (provider id, media id, season
and episode numbers), so saving the same entry again updates in place
and never duplicates.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Any

from libscan.db.connection import transaction
from libscan.db.queries import (
    find_media_by_external_id,
    insert_external_id,
    insert_media,
    library_exists,
    link_media_genre,
    link_media_library,
    link_media_person,
    update_media,
    upsert_episode,
    upsert_external_id,
    upsert_genre,
    upsert_movie,
    upsert_person,
    upsert_season,
    upsert_tv_show,
)
from libscan.db.types import ExternalIdSource, MediaType
from libscan.library.exceptions import LibraryNotFoundError
from libscan.library.genres import normalize_genres
from libscan.library.path_mapping import PathMapper
from libscan.metadata.cache import EpisodeCache
from libscan.metadata.images import image_url
from libscan.metadata.models import MediaMetadata
from libscan.scanner.models import MediaEntry

logger = logging.getLogger(__name__)

DIRECTOR_ROLE = "DIRECTOR"


class SaveStatus(Enum):
    SAVED = "saved"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class SaveOutcome:
    """Result of saving one entry."""

    status: SaveStatus
    media_id: int | None = None
    title: str | None = None
    reason: str | None = None

    @classmethod
    def skipped(cls, reason: str) -> SaveOutcome:
        return cls(SaveStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> SaveOutcome:
        return cls(SaveStatus.FAILED, reason=reason)


def media_fields(metadata: MediaMetadata) -> dict[str, Any]:
    """Media table columns for ``metadata``; image paths become full URLs."""
    return {
        "title": metadata.title or "Unknown",
        "description": metadata.overview,
        "poster_url": image_url(metadata.poster_path),
        "plain_poster_url": metadata.plain_poster_url,
        "backdrop_url": image_url(metadata.backdrop_path),
        "logo_url": metadata.logo_url,
        "release_date": metadata.release_date,
        "rating": metadata.rating,
    }


class PersistenceWriter:
    """Writes media, type-specific records and library links for entries.

    Each ``save`` runs in its own transaction.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        path_mapper: PathMapper | None = None,
        original_root: str | None = None,
    ) -> None:
        """Initialize the writer.

        Args:
            conn: Database connection.
            path_mapper: Maps scanned container paths back to host paths.
            original_root: Root path as the user supplied it (host form).
        """
        self.conn = conn
        self.path_mapper = path_mapper
        self.original_root = original_root

    def storage_path(self, path: str) -> str:
        if self.path_mapper is None:
            return path
        return self.path_mapper.to_host(path, self.original_root)

    def save(
        self,
        entry: MediaEntry,
        media_type: MediaType,
        episode_cache: EpisodeCache | None,
        library_id: int,
    ) -> SaveOutcome:
        """Save one entry.

        Entries without metadata or without a provider id are skipped.

        Returns:
            A SAVED or SKIPPED outcome.

        Raises:
            LibraryNotFoundError: If ``library_id`` does not exist. Nothing
                from this save is kept.
            sqlite3.Error: On database failure (the save is rolled back).
        """
        metadata = entry.metadata
        provider_id = entry.provider_id
        if metadata is None or not provider_id:
            logger.debug("Skipping %s: no metadata or provider id", entry.path)
            return SaveOutcome.skipped("no metadata or provider id")

        conn = self.conn
        with transaction(conn):
            media_id = self._upsert_media(metadata, provider_id, media_type)
            self._save_external_ids(entry, metadata, media_id)
            self._save_genres(media_id, metadata)

            if media_type is MediaType.MOVIE:
                self._save_movie(media_id, entry, metadata)
                logger.info("Saved %s", metadata.title)
            else:
                self._save_episode(media_id, entry, provider_id, episode_cache)

            if not library_exists(conn, library_id):
                raise LibraryNotFoundError(library_id)
            link_media_library(conn, media_id, library_id)

        return SaveOutcome(SaveStatus.SAVED, media_id=media_id, title=metadata.title)

    def _upsert_media(
        self, metadata: MediaMetadata, provider_id: str, media_type: MediaType
    ) -> int:
        fields = media_fields(metadata)
        existing = find_media_by_external_id(
            self.conn, ExternalIdSource.TMDB, provider_id
        )
        if existing is not None:
            if update_media(self.conn, existing.id, fields):
                logger.debug("Updated media %d (%s)", existing.id, fields["title"])
            return existing.id

        media_id = insert_media(self.conn, media_type, fields)
        insert_external_id(self.conn, media_id, ExternalIdSource.TMDB, provider_id)
        logger.debug("Created media %d (%s)", media_id, fields["title"])
        return media_id

    def _save_external_ids(
        self, entry: MediaEntry, metadata: MediaMetadata, media_id: int
    ) -> None:
        ids = entry.extracted_ids
        for source, value in (
            (ExternalIdSource.IMDB, ids.imdb_id or metadata.imdb_id),
            (ExternalIdSource.TVDB, ids.tvdb_id or metadata.tvdb_id),
        ):
            if value:
                upsert_external_id(self.conn, media_id, source, str(value))

    def _save_genres(self, media_id: int, metadata: MediaMetadata) -> None:
        if not metadata.genres:
            logger.warning("[%s] No genres in metadata", metadata.title)
            return
        genres, duplicates = normalize_genres(metadata.genres)
        linked = 0
        for genre in genres:
            genre_id = upsert_genre(self.conn, genre.name, genre.slug)
            if link_media_genre(self.conn, media_id, genre_id):
                linked += 1
            else:
                duplicates += 1
        logger.debug(
            "Genres for %s: %d linked, %d duplicates avoided",
            metadata.title,
            linked,
            duplicates,
        )

    def _save_movie(
        self, media_id: int, entry: MediaEntry, metadata: MediaMetadata
    ) -> None:
        upsert_movie(
            self.conn,
            media_id,
            duration=metadata.runtime,
            file_path=self.storage_path(entry.path),
            file_size=entry.size,
            file_modified_at=entry.modified_at.isoformat(),
        )
        director = metadata.director
        if director is not None:
            upsert_person(
                self.conn,
                director.person_id,
                director.name,
                image_url(director.profile_path),
            )
            link_media_person(self.conn, media_id, director.person_id, DIRECTOR_ROLE)

    def _save_episode(
        self,
        media_id: int,
        entry: MediaEntry,
        provider_id: str,
        episode_cache: EpisodeCache | None,
    ) -> None:
        show_id = upsert_tv_show(self.conn, media_id)
        ids = entry.extracted_ids
        title = entry.metadata.title if entry.metadata else ""
        if ids.season is None:
            logger.info("Saved %s (no season/episode info)", title)
            return
        season_id = upsert_season(self.conn, show_id, ids.season)
        if ids.episode is None:
            logger.info("Saved %s - Season %d", title, ids.season)
            return

        fields: dict[str, Any] = {
            "title": f"Episode {ids.episode}",
            "file_title": ids.title or None,
            "duration": None,
            "air_date": None,
            "still_path": None,
            "file_path": self.storage_path(entry.path),
            "file_size": entry.size,
            "file_modified_at": entry.modified_at.isoformat(),
        }
        season = episode_cache.get(provider_id, ids.season) if episode_cache else None
        episode = season.episode(ids.episode) if season else None
        if episode is not None:
            fields.update(
                title=episode.name or fields["title"],
                duration=episode.runtime,
                air_date=episode.air_date,
                still_path=image_url(episode.still_path),
            )
        upsert_episode(self.conn, season_id, ids.episode, fields)
        logger.info(
            "Saved %s - S%02dE%02d: %s", title, ids.season, ids.episode, fields["title"]
        )
