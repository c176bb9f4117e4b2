"""Provider-neutral metadata models.

Provider adapters convert their responses into these types; nothing past
the fetcher sees a provider's own field names.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from libscan.db.types import MediaType

__all__ = [
    "CrewMember",
    "EpisodeMetadata",
    "ImageInfo",
    "ImageSet",
    "MediaMetadata",
    "SeasonMetadata",
    "SupplementaryImages",
]


@dataclass(frozen=True)
class CrewMember:
    """A credited crew member."""

    person_id: str
    name: str
    job: str
    profile_path: str | None = None


@dataclass
class MediaMetadata:
    """Resolved metadata for one movie or TV show.

    Image fields hold provider-relative paths (e.g. ``/abc.jpg``), except
    ``plain_poster_url`` and ``logo_url`` which are full URLs produced by
    the supplementary image fetch.
    """

    provider_id: str
    media_type: MediaType
    title: str
    overview: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    release_date: str | None = None  # YYYY-MM-DD
    rating: float | None = None
    runtime: int | None = None  # minutes
    genres: list[str] = field(default_factory=list)
    crew: list[CrewMember] = field(default_factory=list)
    imdb_id: str | None = None
    tvdb_id: str | None = None
    plain_poster_url: str | None = None
    logo_url: str | None = None

    @property
    def director(self) -> CrewMember | None:
        """First crew member credited as Director, if any."""
        return next((c for c in self.crew if c.job == "Director"), None)


@dataclass(frozen=True)
class EpisodeMetadata:
    """Per-episode data from a season fetch."""

    episode_number: int
    name: str | None = None
    runtime: int | None = None
    air_date: str | None = None
    still_path: str | None = None


@dataclass
class SeasonMetadata:
    """One season of a show with its episodes."""

    show_id: str
    season_number: int
    name: str | None = None
    episodes: list[EpisodeMetadata] = field(default_factory=list)

    def episode(self, number: int) -> EpisodeMetadata | None:
        """Return episode ``number``, or None if the season lacks it."""
        return next((e for e in self.episodes if e.episode_number == number), None)


@dataclass(frozen=True)
class ImageInfo:
    """One image offered by the provider."""

    file_path: str
    language: str | None = None  # ISO 639-1, None for textless art


@dataclass
class ImageSet:
    """Posters and logos returned by an images call."""

    posters: list[ImageInfo] = field(default_factory=list)
    logos: list[ImageInfo] = field(default_factory=list)


@dataclass(frozen=True)
class SupplementaryImages:
    """Best-effort artwork attached after the main fetch."""

    plain_poster_url: str | None = None
    logo_url: str | None = None

    @classmethod
    def empty(cls) -> SupplementaryImages:
        return cls()
