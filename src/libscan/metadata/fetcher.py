"""Resolve metadata for walked entries.

Lookup order per title: in-memory cache (seeded from the database unless
rescanning) -> provider, with a title search first for entries that
carry no provider id. Entries are grouped by provider id, or by
``(title, year)`` when they have none, so each unique title costs one
provider fetch no matter how many files belong to it.

Every provider call goes through the RateLimiter. A failed fetch or
search is logged and counted; it never aborts the other groups.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from libscan.db.types import MediaType
from libscan.metadata.cache import EpisodeCache, InMemoryMetadataCache, MetadataCache
from libscan.metadata.images import image_url
from libscan.metadata.models import ImageSet, MediaMetadata, SupplementaryImages
from libscan.metadata.provider import MetadataProvider
from libscan.metadata.rate_limit import RateLimiter
from libscan.scanner.models import MediaEntry
from libscan.scanner.scan_log import ScanLogger
from libscan.scanner.timeouts import with_timeout

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_TIMEOUT = 15.0

# (provider_ids, library_id) -> stored metadata by provider id
StoredMetadataLookup = Callable[[list[str], int], Mapping[str, MediaMetadata]]
ProgressCallback = Callable[[int, int], None]

GroupKey = tuple[str, ...]


@dataclass
class FetchResult:
    """Counters for one fetch_all call.

    ``from_provider`` counts provider fetches. ``from_cache`` counts ids
    answered without one: stored metadata, an earlier fetch in the same
    scan, or a concurrent fetch of the same id. Both are per unique id,
    not per file.
    """

    from_cache: int = 0
    from_provider: int = 0
    not_found: int = 0
    failed: int = 0
    groups: int = 0
    _seen_cached: set[str] = field(default_factory=set, repr=False)

    @property
    def total(self) -> int:
        return self.from_cache + self.from_provider


def group_entries(entries: Iterable[MediaEntry]) -> dict[GroupKey, list[MediaEntry]]:
    """Group entries by provider id, else by ``(title, year)``.

    Entries with neither are left out.
    """
    groups: dict[GroupKey, list[MediaEntry]] = {}
    for entry in entries:
        ids = entry.extracted_ids
        if ids.tmdb_id:
            key: GroupKey = ("id", ids.tmdb_id)
        elif ids.title:
            key = ("title", ids.title, ids.year or "")
        else:
            continue
        groups.setdefault(key, []).append(entry)
    return groups


def pick_supplementary_images(
    posters: ImageSet | None, logos: ImageSet | None
) -> SupplementaryImages:
    """Choose a textless poster and an English (else textless) logo."""
    plain_poster = None
    if posters is not None:
        plain_poster = next((p for p in posters.posters if p.language is None), None)
    logo = None
    if logos is not None:
        logo = next((i for i in logos.logos if i.language == "en"), None) or next(
            (i for i in logos.logos if i.language is None), None
        )
    return SupplementaryImages(
        plain_poster_url=image_url(plain_poster.file_path) if plain_poster else None,
        logo_url=image_url(logo.file_path) if logo else None,
    )


class MetadataFetcher:
    """Attach provider metadata to MediaEntry objects for one scan.

    The caches live as long as the fetcher; create one fetcher per scan.
    """

    def __init__(
        self,
        provider: MetadataProvider,
        rate_limiter: RateLimiter,
        *,
        cache: MetadataCache | None = None,
        episode_cache: EpisodeCache | None = None,
        stored_lookup: StoredMetadataLookup | None = None,
        language: str | None = None,
        image_timeout: float = DEFAULT_IMAGE_TIMEOUT,
        scan_log: ScanLogger | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            provider: Metadata source.
            rate_limiter: Gate for every provider call.
            cache: Provider id -> metadata; a fresh in-memory cache if None.
            episode_cache: Season data for TV; a fresh cache if None.
            stored_lookup: Loads metadata saved by earlier scans.
            language: Provider language, e.g. "en-US".
            image_timeout: Seconds allowed per supplementary image call.
            scan_log: Optional per-file audit log.
        """
        self.provider = provider
        self.rate_limiter = rate_limiter
        self.cache = cache if cache is not None else InMemoryMetadataCache()
        self.episode_cache = episode_cache if episode_cache is not None else EpisodeCache()
        self.stored_lookup = stored_lookup
        self.language = language
        self.image_timeout = image_timeout
        self.scan_log = scan_log
        self._inflight: dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Show / movie metadata
    # ------------------------------------------------------------------

    def seed_from_storage(
        self, entries: Iterable[MediaEntry], library_id: int
    ) -> int:
        """Load stored metadata for the entries' provider ids into the cache.

        Returns:
            Number of ids seeded.
        """
        if self.stored_lookup is None:
            return 0
        ids = sorted(
            {e.extracted_ids.tmdb_id for e in entries if e.extracted_ids.tmdb_id}
        )
        if not ids:
            return 0
        stored = self.stored_lookup(ids, library_id)
        for provider_id, metadata in stored.items():
            if provider_id not in self.cache:
                self.cache.seed(provider_id, metadata)
        return len(stored)

    async def fetch_all(
        self,
        entries: list[MediaEntry],
        media_type: MediaType,
        library_id: int,
        rescan: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> FetchResult:
        """Resolve metadata for ``entries`` in place.

        Args:
            entries: Walked entries; ``metadata`` is set on each resolved one.
            media_type: Movie or TV.
            library_id: Library whose stored metadata may be reused.
            rescan: Skip stored metadata and ask the provider again.
            on_progress: Called with (groups done, total groups).

        Returns:
            FetchResult with cache/provider counts.
        """
        result = FetchResult()
        if not rescan:
            self.seed_from_storage(entries, library_id)

        groups = group_entries(entries)
        result.groups = len(groups)
        if not groups:
            return result
        logger.info(
            "Resolving metadata for %d entries in %d unique title(s)",
            len(entries),
            len(groups),
        )

        done = 0

        async def run_group(key: GroupKey, group: list[MediaEntry]) -> None:
            nonlocal done
            try:
                await self._resolve_group(key, group, media_type, result)
            finally:
                done += 1
                if on_progress is not None:
                    on_progress(done, len(groups))

        outcomes = await asyncio.gather(
            *(run_group(key, group) for key, group in groups.items()),
            return_exceptions=True,
        )
        for (key, _), outcome in zip(groups.items(), outcomes):
            if isinstance(outcome, Exception):
                result.failed += 1
                logger.error(
                    "Unexpected error resolving %s: %s", key[1], outcome, exc_info=outcome
                )

        logger.info(
            "Metadata: %d from cache, %d from provider, %d not found, %d failed",
            result.from_cache,
            result.from_provider,
            result.not_found,
            result.failed,
        )
        return result

    async def _resolve_group(
        self,
        key: GroupKey,
        group: list[MediaEntry],
        media_type: MediaType,
        result: FetchResult,
    ) -> None:
        search_matched = False
        if key[0] == "id":
            provider_id = key[1]
        else:
            found = await self._search(key[1], key[2] or None, group, media_type, result)
            if found is None:
                return
            provider_id = found
            search_matched = True

        cached = self.cache.get(provider_id)
        if cached is not None:
            stored = self.cache.is_seeded(provider_id)
            if provider_id not in result._seen_cached:
                result._seen_cached.add(provider_id)
                result.from_cache += 1
                if stored:
                    logger.debug(
                        "Using stored metadata for %s (rescan to refresh)",
                        cached.title,
                    )
            self._apply(group, cached)
            if self.scan_log and not search_matched:
                for entry in group:
                    self.scan_log.metadata_cached(
                        entry.path, provider_id, "database" if stored else "cache"
                    )
            return

        task = self._inflight.get(provider_id)
        owner = task is None
        if task is None:
            task = asyncio.ensure_future(self._fetch_from_provider(provider_id, media_type))
            self._inflight[provider_id] = task
        try:
            metadata = await task
        except Exception as e:
            result.failed += 1
            logger.warning(
                "Failed to fetch metadata for id %s (%s): %s",
                provider_id,
                group[0].name,
                e,
            )
            return
        finally:
            if owner:
                self._inflight.pop(provider_id, None)

        if metadata is None:
            result.not_found += 1
            logger.info("Provider has no metadata for id %s (%s)", provider_id, group[0].name)
            return

        if owner:
            result._seen_cached.add(provider_id)
            result.from_provider += 1
            self.cache.set(provider_id, metadata)
            logger.info(
                "Fetched metadata: %s (applied to %d entr%s)",
                metadata.title,
                len(group),
                "y" if len(group) == 1 else "ies",
            )
        elif provider_id not in result._seen_cached:
            result._seen_cached.add(provider_id)
            result.from_cache += 1
        self._apply(group, metadata)
        if self.scan_log and not search_matched:
            for entry in group:
                self.scan_log.metadata_fetched(entry.path, provider_id, metadata.title)

    async def _search(
        self,
        title: str,
        year: str | None,
        group: list[MediaEntry],
        media_type: MediaType,
        result: FetchResult,
    ) -> str | None:
        """Search by title; on a match, record the id on every entry."""
        try:
            match = await self.rate_limiter.run(
                lambda: self.provider.search(title, media_type, year)
            )
        except Exception as e:
            result.failed += 1
            logger.warning('Search failed for "%s": %s', title, e)
            if self.scan_log:
                for entry in group:
                    self.scan_log.search_failed(entry.path, str(e))
            return None

        if match is None:
            result.not_found += 1
            logger.info('No search results for "%s"%s', title, f" ({year})" if year else "")
            if self.scan_log:
                for entry in group:
                    self.scan_log.search_failed(entry.path)
            return None

        logger.info('Search found id %s for "%s"', match.provider_id, title)
        for entry in group:
            entry.extracted_ids = entry.extracted_ids.with_tmdb_id(match.provider_id)
            if self.scan_log:
                self.scan_log.search_attempted(
                    entry.path, match.total_results, match.provider_id, match.title
                )
        return match.provider_id

    async def _fetch_from_provider(
        self, provider_id: str, media_type: MediaType
    ) -> MediaMetadata | None:
        metadata = await self.rate_limiter.run(
            lambda: self.provider.get_metadata(provider_id, media_type, self.language)
        )
        if metadata is None:
            return None
        if not metadata.genres:
            logger.warning("Provider returned no genres for %s", metadata.title)
        images = await self.fetch_supplementary_images(provider_id, media_type)
        metadata.plain_poster_url = images.plain_poster_url
        metadata.logo_url = images.logo_url
        return metadata

    async def fetch_supplementary_images(
        self, provider_id: str, media_type: MediaType
    ) -> SupplementaryImages:
        """Best-effort textless poster and logo; failures yield empty images."""

        def images_call(include: str):
            return lambda: with_timeout(
                self.provider.get_images(
                    provider_id, media_type, self.language, include_image_language=include
                ),
                self.image_timeout,
                f"images for {provider_id}",
            )

        posters, logos = await asyncio.gather(
            self.rate_limiter.run(images_call("null")),
            self.rate_limiter.run(images_call("en,null")),
            return_exceptions=True,
        )
        if isinstance(posters, Exception):
            logger.warning("Failed to fetch plain poster for id %s: %s", provider_id, posters)
            posters = None
        if isinstance(logos, Exception):
            logger.warning("Failed to fetch logo for id %s: %s", provider_id, logos)
            logos = None
        images = pick_supplementary_images(posters, logos)
        logger.debug(
            "Images for id %s: plain poster %s, logo %s",
            provider_id,
            "found" if images.plain_poster_url else "none",
            "found" if images.logo_url else "none",
        )
        return images

    @staticmethod
    def _apply(group: list[MediaEntry], metadata: MediaMetadata) -> None:
        for entry in group:
            entry.metadata = metadata

    # ------------------------------------------------------------------
    # Season metadata
    # ------------------------------------------------------------------

    async def fetch_season_metadata(
        self,
        entries: Iterable[MediaEntry],
        on_progress: ProgressCallback | None = None,
    ) -> int:
        """Fetch each missing (show, season) once into the episode cache.

        Returns:
            Number of seasons fetched.
        """
        wanted: list[tuple[str, int]] = []
        for entry in entries:
            show_id = entry.provider_id
            season = entry.extracted_ids.season
            if entry.is_directory or not show_id or season is None:
                continue
            key = (show_id, season)
            if key not in wanted and not self.episode_cache.has(*key):
                wanted.append(key)
        if not wanted:
            return 0

        logger.info("Fetching season metadata (%d season(s))", len(wanted))
        fetched = 0
        done = 0

        async def fetch(show_id: str, season_number: int) -> None:
            nonlocal fetched, done
            try:
                season = await self.rate_limiter.run(
                    lambda: self.provider.get_season(show_id, season_number, self.language)
                )
            except Exception as e:
                logger.warning(
                    "Could not fetch season %d of show %s: %s", season_number, show_id, e
                )
            else:
                if season is not None:
                    self.episode_cache.set(season)
                    fetched += 1
                    logger.debug(
                        "Fetched season %d of show %s (%d episodes)",
                        season_number,
                        show_id,
                        len(season.episodes),
                    )
            finally:
                done += 1
                if on_progress is not None:
                    on_progress(done, len(wanted))

        await asyncio.gather(*(fetch(s, n) for s, n in wanted), return_exceptions=True)
        return fetched
