"""Canonical genre names and normalization of provider genre lists."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

# Canonical names, grouped as they are offered in the UI
FILM_TV_GENRES = (
    "Action",
    "Adventure",
    "Animation",
    "Comedy",
    "Crime",
    "Documentary",
    "Drama",
    "Family",
    "Fantasy",
    "History",
    "Horror",
    "Music",
    "Mystery",
    "Romance",
    "Science Fiction",
    "TV Movie",
    "Thriller",
    "War",
    "Western",
)
TV_GENRES = (
    "Action & Adventure",
    "Kids",
    "News",
    "Reality",
    "Soap",
    "Talk",
    "War & Politics",
)
COMIC_GENRES = ("Superhero", "Manga", "Graphic Novel")
MUSIC_GENRES = (
    "Rock",
    "Pop",
    "Jazz",
    "Classical",
    "Electronic",
    "Hip Hop",
    "Metal",
    "Country",
    "Blues",
    "Folk",
    "Reggae",
    "R&B",
    "Indie",
    "Alternative",
    "Punk",
)
CANONICAL_GENRES = FILM_TV_GENRES + TV_GENRES + COMIC_GENRES + MUSIC_GENRES

# Lowercase variants that map onto a different canonical name
_SYNONYMS = {
    "animated": "Animation",
    "documentaries": "Documentary",
    "historical": "History",
    "musical": "Music",
    "romantic": "Romance",
    "sci-fi": "Science Fiction",
    "scifi": "Science Fiction",
    "science-fiction": "Science Fiction",
    "action and adventure": "Action & Adventure",
    "children": "Kids",
    "reality-tv": "Reality",
    "war and politics": "War & Politics",
    "super hero": "Superhero",
    "super-hero": "Superhero",
    "hip-hop": "Hip Hop",
    "hiphop": "Hip Hop",
    "rap": "Hip Hop",
    "heavy metal": "Metal",
    "rnb": "R&B",
    "rhythm and blues": "R&B",
}

GENRE_MAPPING: dict[str, str] = {
    **{name.lower(): name for name in CANONICAL_GENRES},
    **_SYNONYMS,
}


@dataclass(frozen=True)
class NormalizedGenre:
    name: str
    slug: str


def normalize_genre_name(name: str) -> str:
    """Canonical form of ``name``; unknown names are returned stripped."""
    return GENRE_MAPPING.get(name.strip().lower(), name.strip())


def genre_slug(name: str) -> str:
    """URL-friendly slug: ``"Action & Adventure"`` -> ``"action-adventure"``."""
    slug = re.sub(r"[^\w\s-]", "", name.strip().lower())
    slug = re.sub(r"\s+", "-", slug)
    return re.sub(r"-+", "-", slug)


def normalize_genres(names: Iterable[str]) -> tuple[list[NormalizedGenre], int]:
    """Normalize and deduplicate a provider genre list.

    Returns:
        The unique genres in first-seen order, and how many input names
        were dropped as duplicates of an earlier one.
    """
    unique: dict[str, NormalizedGenre] = {}
    duplicates = 0
    for raw in names:
        if not raw or not raw.strip():
            continue
        canonical = normalize_genre_name(raw)
        slug = genre_slug(canonical)
        if slug in unique:
            duplicates += 1
            continue
        unique[slug] = NormalizedGenre(canonical, slug)
    return list(unique.values()), duplicates
