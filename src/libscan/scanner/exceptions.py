"""Scan-level exceptions."""


class ScanError(Exception):
    """Base class for scan failures surfaced to the caller."""


class ScanConfigurationError(ScanError):
    """The scan request is misconfigured and cannot start.

    Raised for a missing provider credential, an invalid filename or
    directory pattern, or an unknown media type.
    """


class ScanValidationError(ScanError):
    """The scan target path is not acceptable."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(message)


class OperationTimeoutError(ScanError):
    """A guarded operation did not finish in time."""

    def __init__(self, operation: str, timeout: float) -> None:
        self.operation = operation
        self.timeout = timeout
        super().__init__(
            f'Operation "{operation}" timed out after {timeout:g}s. '
            "This may indicate a slow or unresponsive mounted drive."
        )
