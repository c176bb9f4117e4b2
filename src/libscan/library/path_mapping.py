"""Host <-> container media path translation.

When libscan runs inside a container, the user supplies host paths
(e.g. ``/Volumes/External/Library/Media/Movies``) that are mounted at a
container path (``/media/Movies``). Scans read the container form;
the database stores the host form so paths stay meaningful outside.
"""

from __future__ import annotations

import logging
import os
from pathlib import PurePosixPath

from libscan.config.models import PathMappingConfig

logger = logging.getLogger(__name__)


def _replace_prefix(path: str, old: str, new: str) -> str | None:
    """Swap a leading ``old`` path prefix for ``new``; None if no prefix match."""
    old = old.rstrip("/")
    if path != old and not path.startswith(old + "/"):
        return None
    return str(PurePosixPath(new.rstrip("/") or "/", path[len(old) :].lstrip("/")))


class PathMapper:
    """Translate media paths between host and container form.

    Container detection (existence of ``container_check_path``) runs once
    per mapper and is cached; pass ``in_container`` to skip it.
    """

    def __init__(
        self,
        config: PathMappingConfig | None = None,
        in_container: bool | None = None,
    ) -> None:
        self.config = config or PathMappingConfig()
        self._in_container = in_container

    @property
    def in_container(self) -> bool:
        if self._in_container is None:
            self._in_container = os.access(self.config.container_check_path, os.R_OK)
            if self._in_container:
                logger.info(
                    "Running in a container; %s is accessible",
                    self.config.container_check_path,
                )
            else:
                logger.info("Running locally; using paths as given")
        return self._in_container

    def to_container(self, host_path: str) -> str:
        """Map a user-supplied host path to the path readable here."""
        if not self.in_container:
            return host_path
        mapped = _replace_prefix(
            host_path, self.config.host_media_path, self.config.container_media_path
        )
        if mapped is None:
            logger.warning(
                "Path %s does not start with the host media path %s; using as is",
                host_path,
                self.config.host_media_path,
            )
            return host_path
        logger.debug("Path mapping: %s -> %s", host_path, mapped)
        return mapped

    def to_host(self, path: str, original_host_path: str | None = None) -> str:
        """Map a scanned path back to host form for storage.

        Only applies when the scan was requested with a host path under
        the host media root; otherwise ``path`` is returned unchanged.
        """
        if original_host_path is None or original_host_path == path:
            return path
        if _replace_prefix(original_host_path, self.config.host_media_path, "/") is None:
            return path
        mapped = _replace_prefix(
            path, self.config.container_media_path, self.config.host_media_path
        )
        return mapped if mapped is not None else path
