"""Heuristic check that a directory's layout matches the requested media type.

Scanning a movie collection as TV (or the reverse) produces poor matches.
A quick sample of the tree scores both layouts; a clear contradiction of
the requested type is reported as a warning, never an error.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from libscan.db.types import MediaType

logger = logging.getLogger(__name__)

SEASON_FOLDER_PATTERN = re.compile(r"season\s*\d+", re.IGNORECASE)
EPISODE_FILE_PATTERN = re.compile(r"S\d{1,2}E\d{1,2}", re.IGNORECASE)
YEAR_FILE_PATTERN = re.compile(r"\(?\d{4}\)?")
SAMPLE_VIDEO_PATTERN = re.compile(r"\.(mkv|mp4|avi|mov)$", re.IGNORECASE)

MAX_ANALYSIS_DEPTH = 4
MAX_SAMPLES = 20
# Score margin by which the other layout must win to raise a warning
MISMATCH_MARGIN = 20


@dataclass
class LayoutHints:
    """Counters gathered from a sample of the tree."""

    season_folders: int = 0
    episode_files: int = 0
    year_files: int = 0
    avg_depth: float = 0.0
    sample_files: list[str] = field(default_factory=list)

    @property
    def tv_score(self) -> int:
        return (
            (40 if self.season_folders > 0 else 0)
            + (30 if self.episode_files > 5 else self.episode_files * 6)
            + (30 if self.avg_depth >= 3 else 0)
        )

    @property
    def movie_score(self) -> int:
        return (
            (40 if self.year_files > 5 else self.year_files * 8)
            + (30 if self.avg_depth <= 2 else 0)
            + (30 if self.season_folders == 0 else 0)
        )


@dataclass(frozen=True)
class MediaTypeCheck:
    mismatch: bool
    confidence: int
    warning: str | None = None


def analyze_layout(root: Path, max_samples: int = MAX_SAMPLES) -> LayoutHints:
    """Sample up to ``max_samples`` video files within four levels of ``root``."""
    hints = LayoutHints()
    depths: list[int] = []

    def visit(path: Path, depth: int) -> None:
        if depth > MAX_ANALYSIS_DEPTH or len(hints.sample_files) >= max_samples:
            return
        try:
            entries = sorted(os.scandir(path), key=lambda e: e.name)
        except OSError:
            return
        for entry in entries:
            if len(hints.sample_files) >= max_samples:
                break
            try:
                is_dir = entry.is_dir()
            except OSError:
                continue
            if is_dir:
                if SEASON_FOLDER_PATTERN.search(entry.name):
                    hints.season_folders += 1
                visit(Path(entry.path), depth + 1)
                continue
            if not SAMPLE_VIDEO_PATTERN.search(entry.name):
                continue
            depths.append(depth)
            hints.sample_files.append(entry.name)
            if EPISODE_FILE_PATTERN.search(entry.name):
                hints.episode_files += 1
            if YEAR_FILE_PATTERN.search(entry.name):
                hints.year_files += 1

    visit(root, 0)
    if depths:
        hints.avg_depth = sum(depths) / len(depths)
    return hints


def detect_media_type_mismatch(root: Path, media_type: MediaType) -> MediaTypeCheck:
    """Compare the requested media type with the tree's apparent layout.

    Args:
        root: Scan root.
        media_type: Type the caller asked to scan as.

    Returns:
        MediaTypeCheck; ``warning`` is set when the other layout scores
        more than MISMATCH_MARGIN points higher.
    """
    hints = analyze_layout(root)
    logger.info(
        "Layout analysis of %s: %d season folders, %d episode files, "
        "%d year-tagged files, average depth %.1f",
        root,
        hints.season_folders,
        hints.episode_files,
        hints.year_files,
        hints.avg_depth,
    )

    tv_score, movie_score = hints.tv_score, hints.movie_score
    if media_type is MediaType.TV and movie_score > tv_score + MISMATCH_MARGIN:
        return MediaTypeCheck(
            mismatch=True,
            confidence=movie_score,
            warning=(
                f'Scanning as "tv" but {root} looks like a movie collection '
                f"({hints.year_files} year-tagged files, average depth "
                f"{hints.avg_depth:.1f}, {hints.season_folders} season folders). "
                'Consider scanning as "movie" instead.'
            ),
        )
    if media_type is MediaType.MOVIE and tv_score > movie_score + MISMATCH_MARGIN:
        return MediaTypeCheck(
            mismatch=True,
            confidence=tv_score,
            warning=(
                f'Scanning as "movie" but {root} looks like a TV collection '
                f"({hints.season_folders} season folders, {hints.episode_files} "
                f"episode files, average depth {hints.avg_depth:.1f}). "
                'Consider scanning as "tv" instead.'
            ),
        )
    confidence = tv_score if media_type is MediaType.TV else movie_score
    return MediaTypeCheck(mismatch=False, confidence=confidence)
