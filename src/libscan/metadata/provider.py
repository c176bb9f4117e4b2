"""Metadata provider interface.

The scanner depends only on this protocol; ``libscan.metadata.tmdb``
is the production implementation and tests substitute stubs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from libscan.db.types import MediaType
from libscan.metadata.models import ImageSet, MediaMetadata, SeasonMetadata


@dataclass(frozen=True)
class SearchMatch:
    """Best search hit for a title."""

    provider_id: str
    title: str
    total_results: int = 1


class MetadataProvider(Protocol):
    """Capabilities the scan pipeline needs from a metadata source.

    Every call may be subject to an external rate limit; callers gate
    them through a RateLimiter.
    """

    async def search(
        self, title: str, media_type: MediaType, year: str | None = None
    ) -> SearchMatch | None:
        """Return the best match for ``title``, or None when nothing matches."""
        ...

    async def get_metadata(
        self, provider_id: str, media_type: MediaType, language: str | None = None
    ) -> MediaMetadata | None:
        """Return full metadata (with credits) or None for an unknown id."""
        ...

    async def get_season(
        self, show_id: str, season_number: int, language: str | None = None
    ) -> SeasonMetadata | None:
        """Return one season's episode list, or None when it does not exist."""
        ...

    async def get_images(
        self,
        provider_id: str,
        media_type: MediaType,
        language: str | None = None,
        include_image_language: str | None = None,
    ) -> ImageSet:
        """Return posters and logos filtered by image language."""
        ...
