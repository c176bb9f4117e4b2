"""Tests for PersistenceWriter."""

import sqlite3
from datetime import datetime, timezone

import pytest

from libscan.db.queries import (
    count_library_links,
    find_media_by_external_id,
    get_episode,
    get_media,
    get_media_genre_names,
    get_movie_by_media_id,
    upsert_library,
)
from libscan.db.types import ExternalIdSource, MediaType
from libscan.library.exceptions import LibraryNotFoundError
from libscan.library.writer import PersistenceWriter, SaveStatus
from libscan.metadata.cache import EpisodeCache
from libscan.metadata.images import image_url
from libscan.scanner.models import ExtractedIds, MediaEntry

from fakes import movie_metadata, season, show_metadata


def _entry(path: str, metadata=None, **ids) -> MediaEntry:
    return MediaEntry(
        path=path,
        name=path.rsplit("/", 1)[-1],
        is_directory=False,
        size=1024,
        modified_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
        extracted_ids=ExtractedIds(**ids),
        metadata=metadata,
    )


@pytest.fixture
def library_id(db_conn: sqlite3.Connection) -> int:
    library = upsert_library(db_conn, "Movies", "movies", "/media/Movies", MediaType.MOVIE)
    db_conn.commit()
    return library.id


class TestSaveMovie:
    """Saving movie entries."""

    def test_saves_media_movie_genres_and_link(self, db_conn, library_id):
        writer = PersistenceWriter(db_conn)
        entry = _entry(
            "/media/Movies/Inception/Inception.mkv",
            movie_metadata(),
            tmdb_id="27205",
        )

        outcome = writer.save(entry, MediaType.MOVIE, None, library_id)

        assert outcome.status is SaveStatus.SAVED
        media = find_media_by_external_id(db_conn, ExternalIdSource.TMDB, "27205")
        assert media.id == outcome.media_id
        assert media.title == "Inception"
        assert media.poster_url == image_url("/poster.jpg")
        assert find_media_by_external_id(db_conn, ExternalIdSource.IMDB, "tt1375666")
        movie = get_movie_by_media_id(db_conn, media.id)
        assert movie["duration"] == 148
        assert movie["file_size"] == 1024
        assert get_media_genre_names(db_conn, media.id) == ["Action", "Science Fiction"]
        assert count_library_links(db_conn, media.id) == 1

    def test_saving_twice_is_idempotent(self, db_conn, library_id):
        """A second save updates in place: one media row, one link."""
        writer = PersistenceWriter(db_conn)
        entry = _entry("/m/Inception.mkv", movie_metadata(), tmdb_id="27205")

        first = writer.save(entry, MediaType.MOVIE, None, library_id)
        updated_at = get_media(db_conn, first.media_id).updated_at
        second = writer.save(entry, MediaType.MOVIE, None, library_id)

        assert second.media_id == first.media_id
        assert db_conn.execute("SELECT COUNT(*) FROM media").fetchone()[0] == 1
        assert count_library_links(db_conn, first.media_id) == 1
        assert get_media(db_conn, first.media_id).updated_at == updated_at

    def test_changed_metadata_updates(self, db_conn, library_id):
        writer = PersistenceWriter(db_conn)
        entry = _entry("/m/Inception.mkv", movie_metadata(), tmdb_id="27205")
        first = writer.save(entry, MediaType.MOVIE, None, library_id)

        entry.metadata = movie_metadata(title="Inception (Remastered)")
        writer.save(entry, MediaType.MOVIE, None, library_id)

        assert get_media(db_conn, first.media_id).title == "Inception (Remastered)"

    def test_without_metadata_is_skipped(self, db_conn, library_id):
        outcome = PersistenceWriter(db_conn).save(
            _entry("/m/unknown.mkv"), MediaType.MOVIE, None, library_id
        )
        assert outcome.status is SaveStatus.SKIPPED
        assert db_conn.execute("SELECT COUNT(*) FROM media").fetchone()[0] == 0

    def test_missing_library_rolls_back(self, db_conn):
        """Nothing is kept when the library does not exist."""
        entry = _entry("/m/Inception.mkv", movie_metadata(), tmdb_id="27205")
        with pytest.raises(LibraryNotFoundError):
            PersistenceWriter(db_conn).save(entry, MediaType.MOVIE, None, 999)
        assert db_conn.execute("SELECT COUNT(*) FROM media").fetchone()[0] == 0


class TestSaveEpisode:
    """Saving TV episode entries."""

    def test_episode_uses_season_data(self, db_conn, library_id):
        cache = EpisodeCache()
        cache.set(season("40075", 1, 3))
        metadata = show_metadata("40075", "Gravity Falls")
        writer = PersistenceWriter(db_conn)

        for number in (1, 2):
            entry = _entry(
                f"/tv/Gravity Falls/Season 1/S01E0{number}.mkv",
                metadata,
                tmdb_id="40075",
                title="Gravity Falls",
                season=1,
                episode=number,
            )
            outcome = writer.save(entry, MediaType.TV, cache, library_id)
            assert outcome.status is SaveStatus.SAVED

        assert db_conn.execute("SELECT COUNT(*) FROM media").fetchone()[0] == 1
        episode = get_episode(db_conn, outcome.media_id, 1, 2)
        assert episode["title"] == "Chapter 2"
        assert episode["duration"] == 22
        assert episode["file_path"] == "/tv/Gravity Falls/Season 1/S01E02.mkv"

    def test_episode_without_season_data(self, db_conn, library_id):
        """Without season data the title falls back to "Episode N"."""
        entry = _entry(
            "/tv/Show/S02E05.mkv",
            show_metadata("7", "Show"),
            tmdb_id="7",
            season=2,
            episode=5,
        )
        outcome = PersistenceWriter(db_conn).save(entry, MediaType.TV, None, library_id)
        assert get_episode(db_conn, outcome.media_id, 2, 5)["title"] == "Episode 5"
