"""Tests for MetadataFetcher."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest

from libscan.db.types import MediaType
from libscan.metadata.fetcher import (
    MetadataFetcher,
    group_entries,
    pick_supplementary_images,
)
from libscan.metadata.images import image_url
from libscan.metadata.models import ImageInfo, ImageSet
from libscan.metadata.provider import SearchMatch
from libscan.metadata.rate_limit import RateLimiter
from libscan.scanner.config import ScanConfig
from libscan.scanner.models import ExtractedIds, MediaEntry
from libscan.scanner.walker import collect_media_entries

from fakes import FakeProvider, movie_metadata, season, show_metadata
from helpers import make_files


def _entry(name: str, **ids) -> MediaEntry:
    return MediaEntry(
        path=f"/library/{name}",
        name=name,
        is_directory=False,
        size=1,
        modified_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        extracted_ids=ExtractedIds(**ids),
    )


def _episodes(show_id: str, count: int, season_number: int = 1) -> list[MediaEntry]:
    return [
        _entry(
            f"{show_id}-S{season_number:02d}E{n:02d}.mkv",
            tmdb_id=show_id,
            title=f"Show {show_id}",
            season=season_number,
            episode=n,
        )
        for n in range(1, count + 1)
    ]


def _fetcher(provider: FakeProvider, **kwargs) -> MetadataFetcher:
    return MetadataFetcher(provider, RateLimiter(max_requests=1000), **kwargs)


class TestGroupEntries:
    """Tests for group_entries."""

    def test_groups_by_id_then_title(self):
        entries = [
            _entry("a.mkv", tmdb_id="1", title="A"),
            _entry("b.mkv", tmdb_id="1", title="B"),
            _entry("c.mkv", title="C", year="2001"),
            _entry("d.mkv", title="C", year="2001"),
            _entry("e.mkv"),
        ]
        groups = group_entries(entries)
        assert set(groups) == {("id", "1"), ("title", "C", "2001")}
        assert len(groups[("id", "1")]) == 2

    def test_flat_show_folders_stay_separate(self, media_root: Path):
        """Episodes directly under their show folders group per show."""
        make_files(
            media_root,
            "Gravity Falls {tmdb-40075}/S01E01.mkv",
            "Bluey (2018)/S01E01.mkv",
            "Bluey (2018)/S01E02.mkv",
        )
        walked = collect_media_entries(media_root, ScanConfig.create(MediaType.TV))

        groups = group_entries(walked.entries)

        assert set(groups) == {("id", "40075"), ("title", "Bluey", "2018")}
        assert len(groups[("title", "Bluey", "2018")]) == 2


class TestFetchAll:
    """Lookup order, grouping and counting."""

    @pytest.mark.asyncio
    async def test_flat_shows_resolve_separately(self, media_root: Path):
        """Each show folder gets its own lookup and its own metadata."""
        make_files(
            media_root,
            "Gravity Falls {tmdb-40075}/S01E01.mkv",
            "Bluey (2018)/S01E01.mkv",
            "Bluey (2018)/S01E02.mkv",
        )
        entries = collect_media_entries(
            media_root, ScanConfig.create(MediaType.TV)
        ).entries
        provider = FakeProvider(
            metadata={
                "40075": show_metadata("40075", "Gravity Falls"),
                "82728": show_metadata("82728", "Bluey"),
            },
            search_results={"Bluey": SearchMatch("82728", "Bluey")},
        )

        await _fetcher(provider).fetch_all(entries, MediaType.TV, library_id=1)

        assert provider.calls["search"] == 1
        assert sorted(provider.metadata_requests) == ["40075", "82728"]
        titles = {e.show_folder: e.metadata.title for e in entries}
        assert titles == {
            "Gravity Falls {tmdb-40075}": "Gravity Falls",
            "Bluey (2018)": "Bluey",
        }

    @pytest.mark.asyncio
    async def test_one_fetch_per_show(self):
        """20 episodes of 2 shows cost exactly 2 metadata calls."""
        provider = FakeProvider(
            metadata={"1": show_metadata("1", "One"), "2": show_metadata("2", "Two")}
        )
        entries = _episodes("1", 10) + _episodes("2", 10)

        result = await _fetcher(provider).fetch_all(entries, MediaType.TV, library_id=1)

        assert provider.calls["get_metadata"] == 2
        assert result.from_provider == 2
        assert result.from_cache == 0
        assert all(e.metadata is not None for e in entries)
        assert {e.metadata.title for e in entries[:10]} == {"One"}

    @pytest.mark.asyncio
    async def test_supplementary_images_attached(self):
        """A textless poster and the English logo are attached as URLs."""
        provider = FakeProvider(metadata={"27205": movie_metadata()})
        entry = _entry("Inception.mkv", tmdb_id="27205")

        await _fetcher(provider).fetch_all([entry], MediaType.MOVIE, library_id=1)

        assert provider.calls["get_images"] == 2
        assert entry.metadata.plain_poster_url == image_url("/plain.jpg")
        assert entry.metadata.logo_url == image_url("/logo-en.png")

    @pytest.mark.asyncio
    async def test_image_failure_is_not_fatal(self):
        provider = FakeProvider(metadata={"27205": movie_metadata()})
        provider.fail_images = True
        entry = _entry("Inception.mkv", tmdb_id="27205")

        result = await _fetcher(provider).fetch_all([entry], MediaType.MOVIE, 1)

        assert result.from_provider == 1
        assert entry.metadata.plain_poster_url is None
        assert entry.metadata.logo_url is None

    @pytest.mark.asyncio
    async def test_title_search(self):
        """Entries without an id are matched by title search first."""
        provider = FakeProvider(
            metadata={"27205": movie_metadata()},
            search_results={"Inception": SearchMatch("27205", "Inception", 3)},
        )
        entry = _entry("Inception (2010).mkv", title="Inception", year="2010")

        result = await _fetcher(provider).fetch_all([entry], MediaType.MOVIE, 1)

        assert provider.calls["search"] == 1
        assert entry.extracted_ids.tmdb_id == "27205"
        assert entry.metadata.title == "Inception"
        assert result.from_provider == 1

    @pytest.mark.asyncio
    async def test_not_found(self):
        """Unmatched searches and unknown ids are counted as not found."""
        provider = FakeProvider()
        entries = [_entry("x.mkv", title="Nothing"), _entry("y.mkv", tmdb_id="999")]

        result = await _fetcher(provider).fetch_all(entries, MediaType.MOVIE, 1)

        assert result.not_found == 2
        assert all(e.metadata is None for e in entries)

    @pytest.mark.asyncio
    async def test_provider_failure_is_isolated(self):
        """One failing id does not stop the other groups."""
        provider = FakeProvider(
            metadata={"1": show_metadata("1", "One"), "2": show_metadata("2", "Two")}
        )
        provider.fail_ids = {"2"}
        entries = _episodes("1", 2) + _episodes("2", 2)

        result = await _fetcher(provider).fetch_all(entries, MediaType.TV, 1)

        assert result.failed == 1
        assert result.from_provider == 1
        assert entries[0].metadata is not None
        assert entries[2].metadata is None

    @pytest.mark.asyncio
    async def test_stored_metadata_is_a_cache_hit(self):
        """Seeded ids are answered without calling the provider."""
        provider = FakeProvider(metadata={"27205": movie_metadata()})
        lookups = []

        def stored_lookup(ids, library_id):
            lookups.append((ids, library_id))
            return {"27205": movie_metadata()}

        entries = [
            _entry("Inception.mkv", tmdb_id="27205"),
            _entry("Inception (Director's Cut).mkv", tmdb_id="27205"),
        ]
        result = await _fetcher(provider, stored_lookup=stored_lookup).fetch_all(
            entries, MediaType.MOVIE, library_id=4
        )

        assert lookups == [(["27205"], 4)]
        assert provider.calls["get_metadata"] == 0
        assert result.from_cache == 1
        assert result.from_provider == 0

    @pytest.mark.asyncio
    async def test_rescan_bypasses_stored_metadata(self):
        provider = FakeProvider(metadata={"27205": movie_metadata()})
        fetcher = _fetcher(
            provider, stored_lookup=lambda ids, lib: {"27205": movie_metadata()}
        )
        entry = _entry("Inception.mkv", tmdb_id="27205")

        result = await fetcher.fetch_all([entry], MediaType.MOVIE, 1, rescan=True)

        assert provider.calls["get_metadata"] == 1
        assert result.from_cache == 0
        assert result.from_provider == 1

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_fetch(self):
        """Two concurrent fetches of one id issue a single provider call."""
        provider = FakeProvider(metadata={"27205": movie_metadata()}, delay=0.01)
        fetcher = _fetcher(provider)
        first = _entry("a.mkv", tmdb_id="27205")
        second = _entry("b.mkv", tmdb_id="27205")

        results = await asyncio.gather(
            fetcher.fetch_all([first], MediaType.MOVIE, 1),
            fetcher.fetch_all([second], MediaType.MOVIE, 1),
        )

        assert provider.calls["get_metadata"] == 1
        assert sum(r.from_provider for r in results) == 1
        assert sum(r.from_cache for r in results) == 1
        assert [r.total for r in results] == [1, 1]
        assert first.metadata is second.metadata

    @pytest.mark.asyncio
    async def test_earlier_fetch_counts_as_cached(self):
        """An id fetched by an earlier batch is counted as a cache hit."""
        provider = FakeProvider(metadata={"27205": movie_metadata()})
        fetcher = _fetcher(provider)

        first = await fetcher.fetch_all(
            [_entry("a.mkv", tmdb_id="27205")], MediaType.MOVIE, 1
        )
        second = await fetcher.fetch_all(
            [_entry("b.mkv", tmdb_id="27205")], MediaType.MOVIE, 1
        )

        assert provider.calls["get_metadata"] == 1
        assert (first.from_provider, first.from_cache) == (1, 0)
        assert (second.from_provider, second.from_cache) == (0, 1)
        assert second.total == 1

    @pytest.mark.asyncio
    async def test_search_and_id_for_same_title_count_once(self):
        """A title match resolving to an already-fetched id is one hit."""
        provider = FakeProvider(
            metadata={"27205": movie_metadata()},
            search_results={"Inception": SearchMatch("27205", "Inception")},
        )
        entries = [
            _entry("Inception {tmdb-27205}.mkv", tmdb_id="27205"),
            _entry("Inception.2010.mkv", title="Inception", year="2010"),
        ]

        result = await _fetcher(provider).fetch_all(entries, MediaType.MOVIE, 1)

        assert provider.calls["get_metadata"] == 1
        assert result.total == 1
        assert all(e.metadata is not None for e in entries)

    @pytest.mark.asyncio
    async def test_progress_callback(self):
        provider = FakeProvider(metadata={"1": show_metadata("1", "One")})
        seen = []

        await _fetcher(provider).fetch_all(
            _episodes("1", 3), MediaType.TV, 1, on_progress=lambda d, t: seen.append((d, t))
        )
        assert seen == [(1, 1)]


class TestSeasonMetadata:
    """Tests for fetch_season_metadata."""

    @pytest.mark.asyncio
    async def test_each_season_fetched_once(self):
        """Episodes of the same season share one season call."""
        provider = FakeProvider(
            metadata={"1": show_metadata("1", "One")},
            seasons={("1", 1): season("1", 1, 3), ("1", 2): season("1", 2, 2)},
        )
        fetcher = _fetcher(provider)
        entries = _episodes("1", 3, 1) + _episodes("1", 2, 2)
        await fetcher.fetch_all(entries, MediaType.TV, 1)

        assert await fetcher.fetch_season_metadata(entries) == 2
        assert provider.calls["get_season"] == 2
        assert fetcher.episode_cache.get("1", 2).episode(2).name == "Chapter 2"

        assert await fetcher.fetch_season_metadata(entries) == 0
        assert provider.calls["get_season"] == 2

    @pytest.mark.asyncio
    async def test_missing_season_is_skipped(self):
        provider = FakeProvider(metadata={"1": show_metadata("1", "One")})
        fetcher = _fetcher(provider)
        entries = _episodes("1", 1, 9)
        await fetcher.fetch_all(entries, MediaType.TV, 1)

        assert await fetcher.fetch_season_metadata(entries) == 0
        assert len(fetcher.episode_cache) == 0


class TestPickSupplementaryImages:
    """Tests for pick_supplementary_images."""

    def test_falls_back_to_textless_logo(self):
        logos = ImageSet(logos=[ImageInfo("/fr.png", "fr"), ImageInfo("/none.png")])
        images = pick_supplementary_images(None, logos)
        assert images.plain_poster_url is None
        assert images.logo_url == image_url("/none.png")

    def test_nothing_suitable(self):
        posters = ImageSet(posters=[ImageInfo("/en.jpg", "en")])
        images = pick_supplementary_images(posters, ImageSet())
        assert images.plain_poster_url is None
        assert images.logo_url is None
