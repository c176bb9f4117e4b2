"""In-memory caches shared by the fetch tasks of one scan.

Reads and writes are synchronous, so check-then-set is atomic with
respect to other asyncio tasks. Use from one event loop thread only.
"""

from __future__ import annotations

from typing import Protocol

from libscan.metadata.models import MediaMetadata, SeasonMetadata


class MetadataCache(Protocol):
    """Provider id -> MediaMetadata."""

    def get(self, provider_id: str) -> MediaMetadata | None: ...

    def set(self, provider_id: str, metadata: MediaMetadata) -> None: ...

    def seed(self, provider_id: str, metadata: MediaMetadata) -> None: ...

    def is_seeded(self, provider_id: str) -> bool: ...

    def __contains__(self, provider_id: object) -> bool: ...


class InMemoryMetadataCache:
    """Dict-backed MetadataCache that also remembers which ids were seeded.

    Seeded entries came from the database rather than the provider; the
    fetcher counts hits on them as cache hits.
    """

    def __init__(self) -> None:
        self._items: dict[str, MediaMetadata] = {}
        self._seeded: set[str] = set()

    def get(self, provider_id: str) -> MediaMetadata | None:
        return self._items.get(provider_id)

    def set(self, provider_id: str, metadata: MediaMetadata) -> None:
        self._items[provider_id] = metadata
        self._seeded.discard(provider_id)

    def seed(self, provider_id: str, metadata: MediaMetadata) -> None:
        """Add metadata loaded from storage."""
        self._items[provider_id] = metadata
        self._seeded.add(provider_id)

    def is_seeded(self, provider_id: str) -> bool:
        return provider_id in self._seeded

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._items

    def __len__(self) -> int:
        return len(self._items)


class EpisodeCache:
    """(show id, season number) -> SeasonMetadata."""

    def __init__(self) -> None:
        self._seasons: dict[tuple[str, int], SeasonMetadata] = {}

    def get(self, show_id: str, season_number: int) -> SeasonMetadata | None:
        return self._seasons.get((show_id, season_number))

    def set(self, season: SeasonMetadata) -> None:
        self._seasons[(season.show_id, season.season_number)] = season

    def has(self, show_id: str, season_number: int) -> bool:
        return (show_id, season_number) in self._seasons

    def __len__(self) -> int:
        return len(self._seasons)
