"""TMDB implementation of the metadata provider."""

from libscan.metadata.tmdb.client import (
    TmdbAuthError,
    TmdbClient,
    TmdbError,
    TmdbNotFoundError,
)

__all__ = ["TmdbAuthError", "TmdbClient", "TmdbError", "TmdbNotFoundError"]
