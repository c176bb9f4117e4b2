"""Enums and record dataclasses for the libscan database layer.

Timestamps are ISO 8601 UTC strings, as stored.
"""

from dataclasses import dataclass, field
from enum import Enum


class MediaType(Enum):
    """What a library or scan contains."""

    MOVIE = "movie"
    TV = "tv"

    @property
    def record_type(self) -> str:
        """Value stored in media.media_type / libraries.library_type."""
        return "MOVIE" if self is MediaType.MOVIE else "TV_SHOW"

    @classmethod
    def from_record_type(cls, value: str) -> "MediaType":
        return cls.MOVIE if value == "MOVIE" else cls.TV


class ScanJobStatus(Enum):
    """Lifecycle of a batched scan job.

    State transitions:
        PENDING → IN_PROGRESS     (first batch starts)
        IN_PROGRESS → COMPLETED   (pending set drained)
        IN_PROGRESS → FAILED      (staleness sweep or explicit failure)
        PENDING/FAILED → IN_PROGRESS  (resume)
    """

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class FolderState(Enum):
    """Which partition of a scan job a folder belongs to."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class ExternalIdSource(Enum):
    """Origin of an external identifier."""

    TMDB = "TMDB"
    IMDB = "IMDB"
    TVDB = "TVDB"


@dataclass
class LibraryRecord:
    """Database record for a library."""

    id: int
    name: str
    slug: str
    library_path: str
    media_type: MediaType
    created_at: str
    updated_at: str


@dataclass
class MediaRecord:
    """Database record for a media item (movie or TV show)."""

    id: int
    media_type: MediaType
    title: str
    description: str | None
    poster_url: str | None
    plain_poster_url: str | None
    backdrop_url: str | None
    logo_url: str | None
    release_date: str | None
    rating: float | None
    created_at: str
    updated_at: str


@dataclass
class StoredMetadataRow:
    """A media record found by provider id, with its displayable fields.

    Result row of the "existing metadata for these ids in this library"
    query used to seed the metadata cache.
    """

    provider_id: str
    media: MediaRecord
    genres: list[str] = field(default_factory=list)
    duration: int | None = None


@dataclass
class ScanJobRecord:
    """Database record for a batched scan job.

    ``pending``, ``processed`` and ``failed`` are loaded from the
    scan_job_folders child table; every folder is in exactly one of them.
    """

    id: str
    library_id: int
    root_path: str
    media_type: MediaType
    status: ScanJobStatus
    batch_size: int
    total_folders: int
    total_batches: int
    current_batch: int
    processed_count: int
    failed_count: int
    total_items_saved: int
    started_at: str | None
    last_batch_at: str | None
    completed_at: str | None
    error_message: str | None
    created_at: str
    updated_at: str
    pending: list[str] = field(default_factory=list)
    processed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
