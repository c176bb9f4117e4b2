"""Conversion from TMDB response models to provider-neutral metadata."""

from __future__ import annotations

from libscan.db.types import MediaType
from libscan.metadata.models import (
    CrewMember,
    EpisodeMetadata,
    ImageInfo,
    ImageSet,
    MediaMetadata,
    SeasonMetadata,
)
from libscan.metadata.tmdb.models import TmdbDetails, TmdbImages, TmdbSeason


def to_media_metadata(details: TmdbDetails, media_type: MediaType) -> MediaMetadata:
    """Map movie or TV details onto MediaMetadata."""
    if media_type is MediaType.MOVIE:
        title = details.title or details.name or ""
        release_date = details.release_date
        runtime = details.runtime
    else:
        title = details.name or details.title or ""
        release_date = details.first_air_date
        runtime = details.episode_run_time[0] if details.episode_run_time else None

    crew = [
        CrewMember(
            person_id=str(member.id),
            name=member.name,
            job=member.job or "",
            profile_path=member.profile_path,
        )
        for member in (details.credits.crew if details.credits else [])
    ]

    imdb_id = details.imdb_id
    tvdb_id = None
    if details.external_ids is not None:
        imdb_id = imdb_id or details.external_ids.imdb_id
        if details.external_ids.tvdb_id:
            tvdb_id = str(details.external_ids.tvdb_id)

    return MediaMetadata(
        provider_id=str(details.id),
        media_type=media_type,
        title=title,
        overview=details.overview,
        poster_path=details.poster_path,
        backdrop_path=details.backdrop_path,
        release_date=release_date,
        rating=details.vote_average,
        runtime=runtime,
        genres=[genre.name for genre in details.genres],
        crew=crew,
        imdb_id=imdb_id or None,
        tvdb_id=tvdb_id,
    )


def to_season_metadata(season: TmdbSeason, show_id: str) -> SeasonMetadata:
    return SeasonMetadata(
        show_id=show_id,
        season_number=season.season_number,
        name=season.name,
        episodes=[
            EpisodeMetadata(
                episode_number=episode.episode_number,
                name=episode.name,
                runtime=episode.runtime,
                air_date=episode.air_date,
                still_path=episode.still_path,
            )
            for episode in season.episodes
        ],
    )


def to_image_set(images: TmdbImages) -> ImageSet:
    return ImageSet(
        posters=[ImageInfo(i.file_path, i.iso_639_1) for i in images.posters],
        logos=[ImageInfo(i.file_path, i.iso_639_1) for i in images.logos],
    )
