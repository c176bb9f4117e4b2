"""Metadata resolution: provider models, caches, rate limiting, fetching.

Only the provider-neutral models are re-exported here; import the
fetcher and provider clients from their modules.
"""

from libscan.metadata.models import (
    CrewMember,
    EpisodeMetadata,
    ImageInfo,
    ImageSet,
    MediaMetadata,
    SeasonMetadata,
    SupplementaryImages,
)

__all__ = [
    "CrewMember",
    "EpisodeMetadata",
    "ImageInfo",
    "ImageSet",
    "MediaMetadata",
    "SeasonMetadata",
    "SupplementaryImages",
]
