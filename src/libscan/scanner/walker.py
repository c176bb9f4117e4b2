"""Recursive directory walker producing media candidates.

The walk itself is blocking filesystem I/O and runs in a worker thread;
``walk`` is the awaitable entry point used by the orchestrator.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from libscan.db.types import MediaType
from libscan.scanner.config import ScanConfig
from libscan.scanner.filters import is_video_file, should_skip_entry
from libscan.scanner.identifiers import extract_ids, merge_path_ids
from libscan.scanner.models import ExtractedIds, MediaEntry, WalkResult, WalkStats
from libscan.scanner.validator import log_validation_stats, validate_media_path

logger = logging.getLogger(__name__)

# Rejections beyond this many per walk are logged at DEBUG
_VERBOSE_REJECTIONS = 5
_MAX_SAMPLE_FILES = 10


class _Walk:
    """State for one walk over a root (or one folder below it)."""

    def __init__(self, root: Path, config: ScanConfig) -> None:
        self.root = root
        self.config = config
        self.result = WalkResult()
        self.sample_files: list[str] = []
        self.show_seasons: dict[str, set[int]] = {}

    @property
    def stats(self) -> WalkStats:
        return self.result.stats

    def visit(self, directory: Path, depth: int, recurse: bool = True) -> None:
        """List ``directory`` (whose children sit at ``depth + 1``)."""
        try:
            with os.scandir(directory) as it:
                children = sorted(it, key=lambda e: e.name)
        except OSError as e:
            self.stats.errors += 1
            logger.error("Cannot list %s: %s", directory, e)
            return

        if depth == 0 and not children:
            logger.warning("Directory is empty: %s", directory)

        for child in children:
            self.stats.scanned += 1
            try:
                self._visit_entry(child, directory, depth + 1, recurse)
            except OSError as e:
                self.stats.errors += 1
                logger.warning("Cannot access %s: %s", child.path, e)

    def _visit_entry(
        self, child: os.DirEntry, parent: Path, depth: int, recurse: bool
    ) -> None:
        is_dir = child.is_dir(follow_symlinks=self.config.follow_symlinks)
        if not is_dir and len(self.sample_files) < _MAX_SAMPLE_FILES:
            self.sample_files.append(child.name)

        if should_skip_entry(child.name, is_dir):
            self.stats.filtered += 1
            logger.debug("Skipping filtered entry: %s", child.name)
            return
        if is_dir and not self.config.should_include_directory(child.name):
            self.stats.filtered += 1
            logger.debug("Directory does not match pattern: %s", child.name)
            return
        if not is_dir and not self.config.should_include_file(child.name):
            self.stats.filtered += 1
            logger.debug("File does not match pattern: %s", child.name)
            return

        stat = child.stat(follow_symlinks=self.config.follow_symlinks)
        # The scan root and folders above it never lend identifiers
        ids = merge_path_ids(
            extract_ids(child.name),
            extract_ids(parent.name) if depth >= 2 else ExtractedIds(),
            extract_ids(parent.parent.name) if depth >= 3 else None,
        )
        has_ids = bool(ids.tmdb_id or ids.imdb_id or ids.tvdb_id)
        is_media_file = not is_dir and is_video_file(child.name, self.config.extensions)

        # Tagged folders stand in for a movie; TV candidates are episode files
        if is_media_file or (
            has_ids and (not is_dir or self.config.media_type is MediaType.MOVIE)
        ):
            self._consider_candidate(child, is_dir, stat, ids)
        elif not is_dir:
            logger.debug(
                "Not a media file: %s (expected %s)",
                child.name,
                ", ".join(self.config.extensions),
            )

        # One level past max_depth is listed so too-deep files are reported
        if is_dir and recurse and depth <= self.config.max_depth:
            self.visit(Path(child.path), depth, recurse)

    def _consider_candidate(self, child, is_dir, stat, ids) -> None:
        validation = validate_media_path(
            str(self.root),
            child.path,
            self.config.media_type,
            ids,
            max_depth=self.config.max_depth,
        )
        if not validation.valid:
            self.stats.rejected += 1
            if validation.violation == "depth":
                self.stats.depth_violations += 1
            else:
                self.stats.structure_violations += 1
            level = (
                logging.INFO
                if self.stats.rejected <= _VERBOSE_REJECTIONS
                else logging.DEBUG
            )
            logger.log(level, "Skipping %s: %s", child.name, validation.reason)
            return

        if validation.show_folder and ids.season is not None:
            self.show_seasons.setdefault(validation.show_folder, set()).add(ids.season)

        self.stats.accepted += 1
        self.result.entries.append(
            MediaEntry(
                path=child.path,
                name=child.name,
                is_directory=is_dir,
                size=stat.st_size,
                modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                extracted_ids=ids,
                show_folder=validation.show_folder,
            )
        )
        if ids.tmdb_id:
            logger.debug("Found %s [tmdb %s]", child.name, ids.tmdb_id)
        else:
            logger.debug("Found %s [title %r]", child.name, ids.title)

    def report(self) -> None:
        stats = self.stats
        unrecognized = stats.scanned - stats.filtered - stats.rejected - stats.accepted
        logger.info(
            "Walk of %s: scanned %d, filtered %d, rejected %d, unrecognized %d, "
            "accepted %d",
            self.root,
            stats.scanned,
            stats.filtered,
            stats.rejected,
            unrecognized,
            stats.accepted,
        )
        if stats.rejected:
            log_validation_stats(stats)
        if self.config.media_type is MediaType.TV and self.show_seasons:
            logger.info(
                "Found %d show(s) with %d season(s) in total",
                len(self.show_seasons),
                sum(len(seasons) for seasons in self.show_seasons.values()),
            )
        if stats.accepted == 0 and unrecognized > 0:
            logger.warning(
                "%d entries were found but none recognized as media; expected "
                "extensions: %s",
                unrecognized,
                ", ".join(self.config.extensions),
            )
            if self.sample_files:
                logger.warning("Sample files: %s", ", ".join(self.sample_files))


def collect_media_entries(
    root_path: str | Path,
    config: ScanConfig,
    start: str | Path | None = None,
    recurse: bool = True,
) -> WalkResult:
    """Walk ``start`` (default: the root) and collect media candidates.

    Depth and structure are always judged relative to ``root_path``, so
    walking one top-level folder gives the same answers as walking the
    whole tree. Unreadable entries and directories are logged and
    counted, never raised.

    Args:
        root_path: Scan root.
        config: Scan options (media type, depth, extensions, patterns).
        start: Directory below the root to walk instead of the root.
        recurse: Set False to consider only the direct children of ``start``.

    Returns:
        WalkResult with accepted entries and statistics.
    """
    root = Path(root_path)
    start_dir = Path(start) if start is not None else root
    walk_state = _Walk(root, config)
    start_depth = len(start_dir.relative_to(root).parts) if start_dir != root else 0
    walk_state.visit(start_dir, start_depth, recurse)
    walk_state.report()
    return walk_state.result


async def walk(
    root_path: str | Path,
    config: ScanConfig,
    start: str | Path | None = None,
    recurse: bool = True,
) -> WalkResult:
    """Run collect_media_entries in a worker thread."""
    return await asyncio.to_thread(
        collect_media_entries, root_path, config, start, recurse
    )
