"""TMDB v3 API client.

Implements the MetadataProvider protocol over ``httpx.AsyncClient``.
Throttling is the caller's job (see ``libscan.metadata.rate_limit``).
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from libscan.config.models import ProviderConfig
from libscan.db.types import MediaType
from libscan.metadata.models import ImageSet, MediaMetadata, SeasonMetadata
from libscan.metadata.provider import SearchMatch
from libscan.metadata.tmdb.adapter import (
    to_image_set,
    to_media_metadata,
    to_season_metadata,
)
from libscan.metadata.tmdb.models import (
    TmdbDetails,
    TmdbImages,
    TmdbSearchResponse,
    TmdbSeason,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class TmdbError(Exception):
    """Raised when a TMDB request fails."""


class TmdbAuthError(TmdbError):
    """Raised when TMDB rejects the API key."""


class TmdbNotFoundError(TmdbError):
    """Raised when TMDB has no resource at the requested path."""


def _path_type(media_type: MediaType) -> str:
    return "movie" if media_type is MediaType.MOVIE else "tv"


class TmdbClient:
    """Async HTTP client for the TMDB v3 API.

    Accepts either a v3 API key (sent as the ``api_key`` query parameter)
    or a v4 read access token (sent as a bearer token).

    Use as an async context manager, or call ``aclose()`` when done.
    """

    def __init__(
        self,
        config: ProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Provider settings; ``api_key`` must be set.
            transport: Optional transport, e.g. ``httpx.MockTransport`` in tests.

        Raises:
            TmdbAuthError: If no API key is configured.
        """
        if not config.api_key:
            raise TmdbAuthError("A TMDB API key is required")
        self._config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def language(self) -> str:
        return self._config.language

    def _auth(self) -> tuple[dict[str, str], dict[str, str]]:
        """Headers and params carrying the credential."""
        key = self._config.api_key or ""
        # v4 read access tokens are JWTs
        if key.startswith("eyJ"):
            return {"Authorization": f"Bearer {key}"}, {}
        return {}, {"api_key": key}

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers, params = self._auth()
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url.rstrip("/"),
                timeout=self._config.timeout,
                headers={"Accept": "application/json", **headers},
                params=params,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> TmdbClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _get(
        self, path: str, model: type[ModelT], params: dict[str, Any] | None = None
    ) -> ModelT:
        """GET ``path`` and validate the JSON body into ``model``.

        Raises:
            TmdbAuthError: On 401.
            TmdbNotFoundError: On 404.
            TmdbError: On any other HTTP, transport or decoding failure.
        """
        client = self._get_client()
        try:
            response = await client.get(path, params=params)
            if response.status_code == 401:
                raise TmdbAuthError("Invalid TMDB API key")
            if response.status_code == 404:
                raise TmdbNotFoundError(f"Not found: {path}")
            response.raise_for_status()
            return model.model_validate(response.json())
        except httpx.TimeoutException as e:
            raise TmdbError(f"TMDB request timed out: {path}") from e
        except httpx.HTTPStatusError as e:
            raise TmdbError(
                f"TMDB {path} failed ({e.response.status_code}): "
                f"{_status_message(e.response)}"
            ) from e
        except httpx.HTTPError as e:
            raise TmdbError(f"TMDB request failed: {path}: {e}") from e
        except (ValueError, ValidationError) as e:
            raise TmdbError(f"Unexpected TMDB response for {path}: {e}") from e

    async def search(
        self, title: str, media_type: MediaType, year: str | None = None
    ) -> SearchMatch | None:
        """Search by title; returns the first hit or None."""
        params: dict[str, Any] = {"query": title, "language": self.language}
        if year:
            # Movies filter on release year, shows on first air year
            key = "year" if media_type is MediaType.MOVIE else "first_air_date_year"
            params[key] = year
        response = await self._get(
            f"/search/{_path_type(media_type)}", TmdbSearchResponse, params
        )
        if not response.results:
            return None
        best = response.results[0]
        return SearchMatch(
            provider_id=str(best.id),
            title=best.title or best.name or title,
            total_results=response.total_results or len(response.results),
        )

    async def get_metadata(
        self, provider_id: str, media_type: MediaType, language: str | None = None
    ) -> MediaMetadata | None:
        """Fetch details with credits and external ids; None if unknown."""
        params = {
            "language": language or self.language,
            "append_to_response": "credits,external_ids",
        }
        try:
            details = await self._get(
                f"/{_path_type(media_type)}/{provider_id}", TmdbDetails, params
            )
        except TmdbNotFoundError:
            logger.info(
                "TMDB has no %s with id %s", _path_type(media_type), provider_id
            )
            return None
        return to_media_metadata(details, media_type)

    async def get_season(
        self, show_id: str, season_number: int, language: str | None = None
    ) -> SeasonMetadata | None:
        """Fetch one season's episodes; None if the season does not exist."""
        try:
            season = await self._get(
                f"/tv/{show_id}/season/{season_number}",
                TmdbSeason,
                {"language": language or self.language},
            )
        except TmdbNotFoundError:
            logger.info("TMDB show %s has no season %d", show_id, season_number)
            return None
        return to_season_metadata(season, show_id)

    async def get_images(
        self,
        provider_id: str,
        media_type: MediaType,
        language: str | None = None,
        include_image_language: str | None = None,
    ) -> ImageSet:
        """Fetch posters and logos.

        Args:
            provider_id: TMDB id.
            media_type: Movie or TV.
            language: Main language parameter, e.g. "en-US".
            include_image_language: Comma-separated image languages, with
                "null" selecting textless images (e.g. "en,null").
        """
        params: dict[str, Any] = {}
        if language:
            params["language"] = language
        if include_image_language:
            params["include_image_language"] = include_image_language
        images = await self._get(
            f"/{_path_type(media_type)}/{provider_id}/images", TmdbImages, params
        )
        return to_image_set(images)


def _status_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return "Unknown error"
    if isinstance(data, dict) and data.get("status_message"):
        return data["status_message"]
    return "Unknown error"
