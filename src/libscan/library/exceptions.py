"""Exceptions raised while persisting scan results."""


class LibraryError(Exception):
    """Base class for library persistence errors."""


class LibraryNotFoundError(LibraryError):
    """Raised when media is linked to a library id that does not exist."""

    def __init__(self, library_id: int) -> None:
        self.library_id = library_id
        super().__init__(
            f"Cannot link media to library: library {library_id} does not exist"
        )
