"""Transient scan data: extracted identifiers, walked entries, statistics."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime

from libscan.metadata.models import MediaMetadata


@dataclass(frozen=True)
class ExtractedIds:
    """Identifiers recognized in a filename or folder name.

    Every field is optional; an empty instance means nothing matched.
    """

    tmdb_id: str | None = None
    imdb_id: str | None = None
    tvdb_id: str | None = None
    year: str | None = None
    title: str | None = None
    season: int | None = None
    episode: int | None = None

    @property
    def has_episode_info(self) -> bool:
        return self.season is not None and self.episode is not None

    @property
    def is_empty(self) -> bool:
        return self == ExtractedIds()

    def with_tmdb_id(self, tmdb_id: str) -> ExtractedIds:
        return replace(self, tmdb_id=tmdb_id)


@dataclass
class MediaEntry:
    """One filesystem entry discovered by the walker.

    ``metadata`` is attached by the fetcher and consumed by the writer;
    entries are never persisted themselves.
    """

    path: str
    name: str
    is_directory: bool
    size: int
    modified_at: datetime
    extracted_ids: ExtractedIds = field(default_factory=ExtractedIds)
    metadata: MediaMetadata | None = None
    # Grouping key for TV episodes (see validator.show_folder)
    show_folder: str | None = None

    @property
    def provider_id(self) -> str | None:
        """Resolved provider id: the metadata's, else the extracted one."""
        if self.metadata is not None:
            return self.metadata.provider_id
        return self.extracted_ids.tmdb_id


@dataclass
class WalkStats:
    """Counters collected during one walk."""

    scanned: int = 0
    filtered: int = 0
    rejected: int = 0
    accepted: int = 0
    errors: int = 0
    depth_violations: int = 0
    structure_violations: int = 0

    def merge(self, other: WalkStats) -> None:
        self.scanned += other.scanned
        self.filtered += other.filtered
        self.rejected += other.rejected
        self.accepted += other.accepted
        self.errors += other.errors
        self.depth_violations += other.depth_violations
        self.structure_violations += other.structure_violations


@dataclass
class WalkResult:
    """Entries and statistics produced by the walker."""

    entries: list[MediaEntry] = field(default_factory=list)
    stats: WalkStats = field(default_factory=WalkStats)
