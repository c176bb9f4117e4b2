"""Structural validation of candidate media paths.

Depth is counted in path components below the scan root, the file
included: ``root/Movie.mkv`` has depth 1, ``root/Movie/Movie.mkv``
depth 2, ``root/Show/Season 1/S01E01.mkv`` depth 3.

Also home to the two scan-target checks: the dangerous root guard and
the broad media root heuristic.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePath

from libscan.db.types import MediaType
from libscan.scanner.filters import DEFAULT_VIDEO_EXTENSIONS, is_video_file
from libscan.scanner.models import ExtractedIds, WalkStats

logger = logging.getLogger(__name__)

MOVIE_MAX_DEPTH = 2
TV_MAX_DEPTH = 4

_DEPTH_HINTS = {
    MediaType.MOVIE: (
        "Movies should be at most 2 levels deep "
        "(e.g., /movies/Avengers.mkv or /movies/Avengers/Avengers.mkv)"
    ),
    MediaType.TV: (
        "TV shows should be at most 4 levels deep "
        "(e.g., /tvshows/ShowName/Season 1/S1E1.mkv)"
    ),
}

DANGEROUS_ROOT_PATHS: tuple[str, ...] = (
    "/",
    "/home",
    "/usr",
    "/var",
    "/etc",
    "/System",
    "/Library",
    "/Applications",
    "/Users",
    "/Windows",
    "/Program Files",
    "/Program Files (x86)",
    "C:\\",
    "D:\\",
    "E:\\",
    "F:\\",
)

# A scan path with more components than this is treated as deliberate
_BROAD_ROOT_MAX_PATH_DEPTH = 4
BROAD_ROOT_MIN_COLLECTIONS = 3


def default_max_depth(media_type: MediaType) -> int:
    """Recommended maximum depth for a media type."""
    return MOVIE_MAX_DEPTH if media_type is MediaType.MOVIE else TV_MAX_DEPTH


@dataclass(frozen=True)
class PathValidation:
    """Outcome of validating one candidate path."""

    valid: bool
    depth: int
    reason: str | None = None
    # "depth" or "structure" when invalid
    violation: str | None = None
    # TV only: folder that groups episodes of one show
    show_folder: str | None = None


def relative_parts(root_path: str, file_path: str) -> tuple[str, ...]:
    """Path components of ``file_path`` below ``root_path``."""
    return PurePath(os.path.relpath(file_path, root_path)).parts


def validate_movie_path(
    root_path: str, file_path: str, max_depth: int = MOVIE_MAX_DEPTH
) -> PathValidation:
    """Validate a movie candidate: at most ``max_depth`` below the root."""
    depth = len(relative_parts(root_path, file_path))
    if depth > max_depth:
        return PathValidation(
            valid=False,
            depth=depth,
            reason=(
                f"Movie file is too deeply nested (depth: {depth}, max: "
                f"{max_depth}). {_DEPTH_HINTS[MediaType.MOVIE]}"
            ),
            violation="depth",
        )
    return PathValidation(valid=True, depth=depth)


def validate_tv_path(
    root_path: str,
    file_path: str,
    extracted_ids: ExtractedIds,
    max_depth: int = TV_MAX_DEPTH,
) -> PathValidation:
    """Validate a TV candidate.

    The file must be inside a show folder, within ``max_depth``, and carry
    both season and episode numbers. The show folder is the grandparent
    for ``Show/Season/file`` layouts and the parent for ``Show/file``.
    """
    parts = relative_parts(root_path, file_path)
    depth = len(parts)

    if depth > max_depth:
        return PathValidation(
            valid=False,
            depth=depth,
            reason=(
                f"TV show file is too deeply nested (depth: {depth}, max: "
                f"{max_depth}). {_DEPTH_HINTS[MediaType.TV]}"
            ),
            violation="depth",
        )
    if depth < 2:
        return PathValidation(
            valid=False,
            depth=depth,
            reason=(
                "TV show files must be inside a show folder "
                "(e.g., /tvshows/ShowName/S1E1.mkv)"
            ),
            violation="structure",
        )
    if not extracted_ids.has_episode_info:
        return PathValidation(
            valid=False,
            depth=depth,
            reason="File does not contain valid season/episode information (e.g., S1E1)",
            violation="structure",
        )

    show_folder = parts[-3] if depth >= 3 else parts[-2]
    return PathValidation(valid=True, depth=depth, show_folder=show_folder)


def validate_media_path(
    root_path: str,
    file_path: str,
    media_type: MediaType,
    extracted_ids: ExtractedIds | None = None,
    max_depth: int | None = None,
) -> PathValidation:
    """Validate a candidate path for the given media type."""
    limit = max_depth if max_depth is not None else default_max_depth(media_type)
    if media_type is MediaType.MOVIE:
        return validate_movie_path(root_path, file_path, limit)
    return validate_tv_path(root_path, file_path, extracted_ids or ExtractedIds(), limit)


def log_validation_stats(stats: WalkStats) -> None:
    """Log path validation counters after a walk."""
    logger.info(
        "Path validation: %d scanned, %d valid, %d depth violations, "
        "%d structure violations",
        stats.scanned,
        stats.accepted,
        stats.depth_violations,
        stats.structure_violations,
    )
    if stats.depth_violations or stats.structure_violations:
        logger.info(
            "Hint: check that media follows the recommended folder structure; "
            "enable debug logging to see every rejected file"
        )


# ==========================================================================
# Scan target checks
# ==========================================================================


def is_dangerous_root_path(path: str) -> bool:
    """Return True for OS roots, system folders and drive roots.

    Comparison ignores case and normalizes backslashes.
    """
    normalized = path.replace("\\", "/").lower()
    if len(normalized) == 2 and normalized.endswith(":"):
        return True
    for dangerous in DANGEROUS_ROOT_PATHS:
        candidate = dangerous.replace("\\", "/").lower()
        if normalized == candidate or normalized == candidate.rstrip("/") + "/":
            return True
    return False


def contains_media_files(
    dir_path: Path,
    max_depth: int = 2,
    extensions=DEFAULT_VIDEO_EXTENSIONS,
    _depth: int = 0,
) -> bool:
    """Return True if a video file exists within ``max_depth`` levels.

    Unreadable directories count as containing no media.
    """
    if _depth > max_depth:
        return False
    try:
        children = list(os.scandir(dir_path))
    except OSError:
        return False

    subdirs = []
    for child in children:
        try:
            if child.is_dir():
                subdirs.append(child.path)
            elif is_video_file(child.name, extensions):
                return True
        except OSError:
            continue

    if _depth < max_depth:
        for subdir in subdirs:
            if contains_media_files(Path(subdir), max_depth, extensions, _depth + 1):
                return True
    return False


@dataclass
class BroadRootCheck:
    """Result of the broad media root heuristic."""

    is_broad_media_root: bool
    detected_collections: list[str] = field(default_factory=list)
    recommendation: str | None = None


def detect_broad_media_root(path: Path) -> BroadRootCheck:
    """Flag scan paths that hold several unrelated media collections.

    Only shallow paths are inspected; a deep path signals a deliberate
    choice. The path is broad when at least three immediate subdirectories
    each contain video files within two levels.

    Args:
        path: Scan root to inspect.

    Returns:
        BroadRootCheck with the detected collection folders and, when
        broad, a recommendation naming a narrower path.
    """
    if len([part for part in path.parts if part not in ("/", "\\")]) > (
        _BROAD_ROOT_MAX_PATH_DEPTH
    ):
        return BroadRootCheck(is_broad_media_root=False)

    try:
        subdirs = sorted(
            entry.name for entry in os.scandir(path) if entry.is_dir()
        )
    except OSError:
        return BroadRootCheck(is_broad_media_root=False)

    collections = [name for name in subdirs if contains_media_files(path / name)]
    if len(collections) < BROAD_ROOT_MIN_COLLECTIONS:
        return BroadRootCheck(is_broad_media_root=False, detected_collections=collections)

    shown = ", ".join(collections[:3]) + (", ..." if len(collections) > 3 else "")
    return BroadRootCheck(
        is_broad_media_root=True,
        detected_collections=collections,
        recommendation=(
            f"This path contains {len(collections)} separate media folders "
            f"({shown}). Consider scanning specific collections individually "
            f'for better organization, e.g., "{path / collections[0]}"'
        ),
    )
