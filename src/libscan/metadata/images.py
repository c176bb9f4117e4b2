"""Full-size image URL helpers for provider-relative image paths."""

from __future__ import annotations

TMDB_IMAGE_BASE_URL = "https://image.tmdb.org/t/p/original"


def image_url(path: str | None) -> str | None:
    """Build a full-size image URL from a provider path.

    Full URLs pass through, with an accidentally doubled base collapsed.

    Examples:
        >>> image_url("/abc.jpg")
        'https://image.tmdb.org/t/p/original/abc.jpg'
        >>> image_url("abc.jpg")
        'https://image.tmdb.org/t/p/original/abc.jpg'
    """
    if not path:
        return None
    if path.startswith(("http://", "https://")):
        doubled = TMDB_IMAGE_BASE_URL + TMDB_IMAGE_BASE_URL
        while doubled in path:
            path = path.replace(doubled, TMDB_IMAGE_BASE_URL)
        return path
    if not path.startswith("/"):
        path = "/" + path
    return TMDB_IMAGE_BASE_URL + path


def image_path(url: str | None) -> str | None:
    """Inverse of image_url: recover the provider path from a stored URL.

    Values that are not provider image URLs are returned unchanged.
    """
    if not url:
        return None
    if url.startswith(TMDB_IMAGE_BASE_URL):
        return url[len(TMDB_IMAGE_BASE_URL) :] or None
    return url
