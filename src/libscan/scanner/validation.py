"""Checks run on a scan request before any work starts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from libscan.db.types import MediaType
from libscan.library.path_mapping import PathMapper
from libscan.scanner.exceptions import ScanValidationError
from libscan.scanner.media_type import detect_media_type_mismatch
from libscan.scanner.validator import detect_broad_media_root, is_dangerous_root_path

logger = logging.getLogger(__name__)


@dataclass
class ScanTarget:
    """A validated scan root.

    Attributes:
        requested_path: Path as the caller supplied it (host form).
        scan_path: Path readable by this process (container form when
            running in a container).
        warnings: Non-blocking concerns about the target.
    """

    requested_path: str
    scan_path: str
    warnings: list[str] = field(default_factory=list)


def validate_scan_request(
    path: str,
    media_type: MediaType,
    path_mapper: PathMapper | None = None,
    *,
    check_layout: bool = True,
) -> ScanTarget:
    """Validate a scan root and resolve the path to read.

    Args:
        path: Root path supplied by the caller.
        media_type: Requested media type.
        path_mapper: Host/container translation; identity when None.
        check_layout: Run the broad-root and media-type heuristics.

    Returns:
        ScanTarget; heuristic findings are logged and listed in ``warnings``.

    Raises:
        ScanValidationError: For an empty path, a system/drive root, a
            missing path or a path that is not a directory.
    """
    if not path or not path.strip():
        raise ScanValidationError("A scan path is required")
    if is_dangerous_root_path(path):
        raise ScanValidationError(
            f"Refusing to scan {path}: scanning a system or drive root could "
            "take hours and include non-media files. Choose a specific media "
            "folder such as /path/to/Movies.",
            path=path,
        )

    scan_path = path_mapper.to_container(path) if path_mapper else path
    root = Path(scan_path)
    if not root.exists():
        if scan_path != path:
            message = f"Path does not exist: {path} (mapped to {scan_path})"
        else:
            message = f"Path does not exist: {path}"
        raise ScanValidationError(message, path=path)
    if not root.is_dir():
        raise ScanValidationError(f"Not a directory: {path}", path=path)

    target = ScanTarget(requested_path=path, scan_path=scan_path)
    if not check_layout:
        return target

    broad = detect_broad_media_root(root)
    if broad.is_broad_media_root and broad.recommendation:
        logger.warning("Broad media root: %s", broad.recommendation)
        target.warnings.append(broad.recommendation)

    check = detect_media_type_mismatch(root, media_type)
    if check.mismatch and check.warning:
        logger.warning("Media type mismatch: %s", check.warning)
        target.warnings.append(check.warning)

    return target
