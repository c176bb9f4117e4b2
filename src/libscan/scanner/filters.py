"""Skip rules for filesystem entries encountered during a walk.

Decisions depend only on the entry name and whether it is a directory;
depth limits are enforced by the walker and validator.
"""

import re

# Directories that never contain library media
SKIP_DIRECTORIES = frozenset(
    {
        # System
        ".",
        "..",
        "$RECYCLE.BIN",
        "System Volume Information",
        ".Spotlight-V100",
        ".Trashes",
        ".fseventsd",
        ".TemporaryItems",
        # Tooling
        ".git",
        ".svn",
        ".hg",
        "node_modules",
        ".cache",
        ".tmp",
        # NAS thumbnails, recycle bins and bonus content
        "@eaDir",
        "#recycle",
        ".@__thumb",
        ".AppleDouble",
        "Extras",
        "Behind The Scenes",
        "Deleted Scenes",
        "Featurettes",
        "Interviews",
        "Scenes",
        "Shorts",
        "Trailers",
        "Other",
    }
)

# Dot-prefixed directories some users keep media in
ALLOWED_DOT_DIRECTORIES = frozenset({".media", ".movies", ".tv"})

SKIP_FILE_PATTERNS: tuple[re.Pattern[str], ...] = (
    # OS junk
    re.compile(r"^\."),
    re.compile(r"^~\$"),
    re.compile(r"^Thumbs\.db$", re.IGNORECASE),
    re.compile(r"^desktop\.ini$", re.IGNORECASE),
    # Sidecars: metadata, subtitles, artwork
    re.compile(r"\.(nfo|txt|srt|sub|idx|ass|ssa|vtt)$", re.IGNORECASE),
    re.compile(r"\.(jpg|jpeg|png|gif|bmp)$", re.IGNORECASE),
    # Samples and trailers
    re.compile(r"^sample\.", re.IGNORECASE),
    re.compile(r"-sample\.", re.IGNORECASE),
    re.compile(r"\bsample\b", re.IGNORECASE),
    re.compile(r"^trailer\.", re.IGNORECASE),
    re.compile(r"-trailer\.", re.IGNORECASE),
)

DEFAULT_VIDEO_EXTENSIONS: tuple[str, ...] = (
    ".mp4",
    ".mkv",
    ".avi",
    ".mov",
    ".wmv",
    ".flv",
    ".webm",
    ".m4v",
    ".mpg",
    ".mpeg",
    ".m2ts",
    ".ts",
)


def should_skip_entry(name: str, is_directory: bool) -> bool:
    """Return True if an entry must be ignored by the walker.

    Args:
        name: Entry name (not a path).
        is_directory: Whether the entry is a directory.

    Returns:
        True to skip the entry (and, for directories, its subtree).
    """
    if name.startswith("."):
        if not is_directory or name.lower() not in ALLOWED_DOT_DIRECTORIES:
            return True

    if is_directory:
        return name in SKIP_DIRECTORIES or "@eadir" in name.lower()

    return any(pattern.search(name) for pattern in SKIP_FILE_PATTERNS)


def normalize_extensions(extensions) -> tuple[str, ...]:
    """Lowercase extensions and make sure each starts with a dot."""
    normalized = []
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        normalized.append(ext if ext.startswith(".") else f".{ext}")
    return tuple(dict.fromkeys(normalized))


def is_video_file(name: str, extensions=DEFAULT_VIDEO_EXTENSIONS) -> bool:
    """Return True if ``name`` ends in one of ``extensions`` (case-insensitive)."""
    lowered = name.lower()
    return any(lowered.endswith(ext.lower()) for ext in extensions)
