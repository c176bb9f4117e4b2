"""Identifier extraction from file and folder names.

Recognizes explicit provider tags such as ``{tmdb-27205}``,
``[imdb-tt1375666]`` or ``tvdb-81189``, a year (``(2010)``, or a bare
``.2010.`` after the title), and season/episode markers (``S01E02``,
``1x02``, ``Season 1``). What remains after stripping those and common
release noise becomes the title guess. A bare year also ends the title:
in scene-style names everything after it is release noise.

Extraction is pure: a name that matches nothing yields an ExtractedIds
whose only field is the title guess.
"""

import re

from libscan.scanner.models import ExtractedIds

# Explicit provider tags, optionally wrapped in [] or {}
TMDB_TAG_PATTERN = re.compile(r"[\[{]?tmdb[:-](\d+)[\]}]?", re.IGNORECASE)
IMDB_TAG_PATTERN = re.compile(r"[\[{]?imdb[:-](tt\d+)[\]}]?", re.IGNORECASE)
TVDB_TAG_PATTERN = re.compile(r"[\[{]?tvdb[:-](\d+)[\]}]?", re.IGNORECASE)
ANY_TAG_PATTERN = re.compile(r"[\[{]?(?:tmdb|imdb|tvdb)[:-]\w+[\]}]?", re.IGNORECASE)

# Inferred patterns
YEAR_PATTERN = re.compile(r"[\[(](\d{4})[\])]")
# Not at the start of a name, so titles like "1917" stay titles
BARE_YEAR_PATTERN = re.compile(r"(?<=[\s._-])((?:19|20)\d{2})(?![0-9A-Za-z])")
SXXEYY_PATTERN = re.compile(r"[Ss](\d{1,2})[Ee](\d{1,2})")
NXNN_PATTERN = re.compile(r"(?<!\d)(\d{1,2})x(\d{1,2})(?!\d)")
SEASON_PATTERN = re.compile(r"season\s*(\d{1,2})", re.IGNORECASE)

VIDEO_EXTENSION_PATTERN = re.compile(
    r"\.(mkv|mp4|avi|mov|wmv|m4v|webm|flv|mpg|mpeg|m2ts|ts)$", re.IGNORECASE
)
_QUALITY_TAGS = r"(?:1080p|720p|480p|2160p|4K|AV1|x264|x265|HEVC|BD|BluRay|WEB-?DL|WEBRip)"
_BARE_QUALITY_PATTERN = re.compile(
    r"(?<![0-9A-Za-z])" + _QUALITY_TAGS + r"(?![0-9A-Za-z])", re.IGNORECASE
)

# Title cleanup, applied in order
_TITLE_NOISE: tuple[re.Pattern[str], ...] = (
    re.compile(r"^\[[\w\s-]+\]\s*"),  # leading [Group]
    re.compile(r"\([^)]*" + _QUALITY_TAGS + r"[^)]*\)", re.IGNORECASE),
    re.compile(r"\[[^\]]*" + _QUALITY_TAGS + r"[^\]]*\]", re.IGNORECASE),
    re.compile(r"\[[0-9A-F]{8}\]", re.IGNORECASE),  # CRC hash
    re.compile(r"\((?:OAD|OVA|ONA|Special|Movie|Batch)\d*\)", re.IGNORECASE),
    ANY_TAG_PATTERN,
)


def _first_group(pattern: re.Pattern[str], text: str) -> str | None:
    match = pattern.search(text)
    return match.group(1) if match else None


def _find_year(text: str) -> re.Match[str] | None:
    """Bracketed year first, else a bare one."""
    return YEAR_PATTERN.search(text) or BARE_YEAR_PATTERN.search(text)


def _season_episode(text: str) -> tuple[int | None, int | None]:
    """Find season/episode numbers, trying SxxEyy, then NxNN, then Season N."""
    for pattern in (SXXEYY_PATTERN, NXNN_PATTERN):
        match = pattern.search(text)
        if match:
            return int(match.group(1)), int(match.group(2))
    season = _first_group(SEASON_PATTERN, text)
    return (int(season) if season is not None else None), None


def clean_title(name: str) -> str:
    """Strip tags, years, episode markers and release noise from a name.

    Falls back to the name itself when nothing is left.
    """
    title = VIDEO_EXTENSION_PATTERN.sub("", name)
    for pattern in _TITLE_NOISE:
        title = pattern.sub("", title)
    year = _find_year(title)
    if year is not None and year.re is BARE_YEAR_PATTERN:
        title = title[: year.start()]
    elif year is not None:
        title = title[: year.start()] + title[year.end() :]
    title = _BARE_QUALITY_PATTERN.sub("", title)
    title = SXXEYY_PATTERN.sub("", title)
    title = NXNN_PATTERN.sub("", title)
    title = SEASON_PATTERN.sub("", title)
    title = re.sub(r"\(\d{1,3}\)", "", title)  # (01) style episode numbers
    title = re.sub(r"[._-]+", " ", title)
    title = re.sub(r"\[\s*\]|\(\s*\)|\{\s*\}", "", title)
    title = re.sub(r"\s+", " ", title).strip()
    return title or name


def extract_ids(name: str) -> ExtractedIds:
    """Extract identifiers from a single file or folder name.

    Explicit tags are read first and removed before the year and
    season/episode patterns run, so digits inside a tag are never
    mistaken for a year or an episode marker.

    Args:
        name: Filename or path segment (not a full path).

    Returns:
        ExtractedIds; fields that did not match are None.

    Examples:
        >>> extract_ids("Inception (2010) {tmdb-27205}").tmdb_id
        '27205'
        >>> ids = extract_ids("Breaking.Bad.S02E05.720p.mkv")
        >>> (ids.title, ids.season, ids.episode)
        ('Breaking Bad', 2, 5)
        >>> ids = extract_ids("Inception.2010.1080p.BluRay.x264.mkv")
        >>> (ids.title, ids.year)
        ('Inception', '2010')
    """
    tmdb_id = _first_group(TMDB_TAG_PATTERN, name)
    imdb_id = _first_group(IMDB_TAG_PATTERN, name)
    tvdb_id = _first_group(TVDB_TAG_PATTERN, name)

    untagged = ANY_TAG_PATTERN.sub(" ", name)
    year_match = _find_year(untagged)
    year = year_match.group(1) if year_match else None
    season, episode = _season_episode(untagged)

    return ExtractedIds(
        tmdb_id=tmdb_id,
        imdb_id=imdb_id,
        tvdb_id=tvdb_id,
        year=year,
        title=clean_title(name),
        season=season,
        episode=episode,
    )


def merge_path_ids(
    from_name: ExtractedIds,
    from_parent: ExtractedIds,
    from_grandparent: ExtractedIds | None = None,
) -> ExtractedIds:
    """Combine a file's own identifiers with its folders'.

    Episode files (name carries season and episode) take show-level
    fields from the show folder: the grandparent in
    ``Show/Season 1/S01E01.mkv``, the parent in ``Show/S01E01.mkv``. Any
    other entry takes them from its parent. The name's own values always
    win for ids and year; season falls back to the parent folder
    (``Season 1``); the episode number only ever comes from the name.

    Args:
        from_name: Identifiers from the entry's own name.
        from_parent: Identifiers from the immediate parent folder.
        from_grandparent: Identifiers from the grandparent folder, or
            None when the parent is the show folder (the grandparent is
            the scan root or lies above it).

    Returns:
        Merged identifiers.
    """
    is_episode = from_name.has_episode_info
    if is_episode and from_grandparent is not None:
        show = from_grandparent
    else:
        show = from_parent

    if is_episode:
        title = show.title or from_name.title
    else:
        title = from_name.title

    return ExtractedIds(
        tmdb_id=from_name.tmdb_id or show.tmdb_id,
        imdb_id=from_name.imdb_id or show.imdb_id,
        tvdb_id=from_name.tvdb_id or show.tvdb_id,
        year=from_name.year or show.year,
        title=title,
        season=from_name.season if from_name.season is not None else from_parent.season,
        episode=from_name.episode,
    )
