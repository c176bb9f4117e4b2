"""Immutable per-scan configuration.

A ScanConfig is built once where a scan request enters the system and is
passed down unchanged to the walker, fetcher and orchestrator.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from libscan.db.types import MediaType
from libscan.scanner.exceptions import ScanConfigurationError
from libscan.scanner.filters import DEFAULT_VIDEO_EXTENSIONS, normalize_extensions
from libscan.scanner.validator import default_max_depth


@dataclass(frozen=True)
class ScanConfig:
    """Options for one scan run.

    Attributes:
        media_type: Movie or TV.
        max_depth: Deepest path (in components below the root) a candidate
            may sit at.
        extensions: Lowercase, dot-prefixed video extensions.
        filename_pattern: Optional regex a candidate filename must match.
        directory_pattern: Optional regex (case-insensitive) a directory
            name must match to be descended into.
        follow_symlinks: Treat symlinked directories as directories.
        rescan: Ignore stored metadata and ask the provider again.
        batched: Process top-level folders as checkpointed batches.
    """

    media_type: MediaType = MediaType.MOVIE
    max_depth: int = 2
    extensions: tuple[str, ...] = DEFAULT_VIDEO_EXTENSIONS
    filename_pattern: re.Pattern[str] | None = None
    directory_pattern: re.Pattern[str] | None = None
    follow_symlinks: bool = True
    rescan: bool = False
    batched: bool = False
    library_name: str | None = field(default=None, compare=False)

    @classmethod
    def create(
        cls,
        media_type: MediaType | str = MediaType.MOVIE,
        *,
        max_depth: int | None = None,
        extensions: Iterable[str] | None = None,
        filename_pattern: str | None = None,
        directory_pattern: str | None = None,
        follow_symlinks: bool = True,
        rescan: bool = False,
        batched: bool | None = None,
        library_name: str | None = None,
        depth_limits: dict[MediaType, int] | None = None,
    ) -> ScanConfig:
        """Validate raw request options and build a ScanConfig.

        Args:
            media_type: MediaType or its value ("movie"/"tv").
            max_depth: Overrides the per-type default depth.
            extensions: Allowed extensions; defaults to the common video set.
            filename_pattern: Regex candidate filenames must match.
            directory_pattern: Regex directory names must match.
            follow_symlinks: Follow symlinked directories.
            rescan: Re-fetch metadata even when stored.
            batched: Batched mode; defaults to True for TV, False for movies.
            library_name: Name for the target library.
            depth_limits: Per-type default depths from configuration.

        Raises:
            ScanConfigurationError: On an unknown media type, a non-positive
                depth, an empty extension list, or an invalid regex.
        """
        if isinstance(media_type, str):
            try:
                media_type = MediaType(media_type.lower())
            except ValueError as e:
                raise ScanConfigurationError(
                    f"Unknown media type {media_type!r}; expected 'movie' or 'tv'"
                ) from e

        if max_depth is None:
            limits = depth_limits or {}
            max_depth = limits.get(media_type, default_max_depth(media_type))
        if max_depth < 1:
            raise ScanConfigurationError(f"max_depth must be at least 1, got {max_depth}")

        normalized = normalize_extensions(
            extensions if extensions is not None else DEFAULT_VIDEO_EXTENSIONS
        )
        if not normalized:
            raise ScanConfigurationError("At least one file extension is required")

        return cls(
            media_type=media_type,
            max_depth=max_depth,
            extensions=normalized,
            filename_pattern=_compile("filename", filename_pattern, 0),
            directory_pattern=_compile("directory", directory_pattern, re.IGNORECASE),
            follow_symlinks=follow_symlinks,
            rescan=rescan,
            batched=batched if batched is not None else media_type is MediaType.TV,
            library_name=library_name,
        )

    def should_include_file(self, name: str) -> bool:
        """Apply the filename pattern, if any."""
        return self.filename_pattern is None or bool(self.filename_pattern.search(name))

    def should_include_directory(self, name: str) -> bool:
        """Apply the directory pattern, if any."""
        return self.directory_pattern is None or bool(
            self.directory_pattern.search(name)
        )


def _compile(kind: str, pattern: str | None, flags: int) -> re.Pattern[str] | None:
    if not pattern:
        return None
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise ScanConfigurationError(f"Invalid {kind} pattern {pattern!r}: {e}") from e
