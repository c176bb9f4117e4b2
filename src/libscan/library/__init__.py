"""Library persistence: genres, path mapping and the media writer."""

from libscan.library.exceptions import LibraryError, LibraryNotFoundError
from libscan.library.path_mapping import PathMapper

__all__ = ["LibraryError", "LibraryNotFoundError", "PathMapper"]
