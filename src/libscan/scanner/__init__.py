"""Library scanning: walking, identifier extraction, validation, orchestration.

The orchestrator, walker and queue import the metadata and persistence
layers; import them from their modules. Only the lightweight value types
are re-exported here.
"""

from libscan.scanner.config import ScanConfig
from libscan.scanner.exceptions import (
    OperationTimeoutError,
    ScanConfigurationError,
    ScanError,
    ScanValidationError,
)
from libscan.scanner.models import ExtractedIds, MediaEntry, WalkResult, WalkStats

__all__ = [
    "ExtractedIds",
    "MediaEntry",
    "OperationTimeoutError",
    "ScanConfig",
    "ScanConfigurationError",
    "ScanError",
    "ScanValidationError",
    "WalkResult",
    "WalkStats",
]
