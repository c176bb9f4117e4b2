"""Pydantic models for the subset of TMDB v3 responses libscan reads.

Unknown fields are ignored; TMDB adds fields freely. Empty strings,
which TMDB uses for unknown dates, are normalized to None.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _TmdbModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class TmdbGenre(_TmdbModel):
    id: int
    name: str


class TmdbCrewMember(_TmdbModel):
    id: int
    name: str
    job: str | None = None
    profile_path: str | None = None


class TmdbCredits(_TmdbModel):
    crew: list[TmdbCrewMember] = Field(default_factory=list)


class TmdbExternalIds(_TmdbModel):
    imdb_id: str | None = None
    tvdb_id: int | None = None


class TmdbDetails(_TmdbModel):
    """Movie or TV details (``/movie/{id}`` or ``/tv/{id}``).

    Movies carry ``title``/``release_date``/``runtime``; shows carry
    ``name``/``first_air_date``/``episode_run_time``.
    """

    id: int
    title: str | None = None
    name: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    release_date: str | None = None
    first_air_date: str | None = None
    vote_average: float | None = None
    runtime: int | None = None
    episode_run_time: list[int] = Field(default_factory=list)
    genres: list[TmdbGenre] = Field(default_factory=list)
    imdb_id: str | None = None
    credits: TmdbCredits | None = None
    external_ids: TmdbExternalIds | None = None

    @field_validator("release_date", "first_air_date", "overview", mode="before")
    @classmethod
    def empty_to_none(cls, v: str | None) -> str | None:
        """TMDB sends "" for unknown values."""
        return v or None


class TmdbSearchResult(_TmdbModel):
    id: int
    title: str | None = None
    name: str | None = None


class TmdbSearchResponse(_TmdbModel):
    results: list[TmdbSearchResult] = Field(default_factory=list)
    total_results: int = 0


class TmdbEpisode(_TmdbModel):
    episode_number: int
    name: str | None = None
    runtime: int | None = None
    air_date: str | None = None
    still_path: str | None = None

    @field_validator("air_date", "name", mode="before")
    @classmethod
    def empty_to_none(cls, v: str | None) -> str | None:
        return v or None


class TmdbSeason(_TmdbModel):
    season_number: int
    name: str | None = None
    episodes: list[TmdbEpisode] = Field(default_factory=list)


class TmdbImage(_TmdbModel):
    file_path: str
    iso_639_1: str | None = None


class TmdbImages(_TmdbModel):
    posters: list[TmdbImage] = Field(default_factory=list)
    logos: list[TmdbImage] = Field(default_factory=list)
