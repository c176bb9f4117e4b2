"""SQLite persistence for libscan.

Modules:
    connection: Connection setup and lock retry
    schema: DDL, versioning, initialization
    types: Enums and record dataclasses
    queries: Query functions per entity
"""

from libscan.db.connection import (
    DatabaseLockedError,
    execute_with_retry,
    get_connection,
    open_connection,
    transaction,
)
from libscan.db.schema import create_schema, initialize_database
from libscan.db.types import (
    ExternalIdSource,
    FolderState,
    LibraryRecord,
    MediaRecord,
    MediaType,
    ScanJobRecord,
    ScanJobStatus,
    StoredMetadataRow,
)

__all__ = [
    "DatabaseLockedError",
    "ExternalIdSource",
    "FolderState",
    "LibraryRecord",
    "MediaRecord",
    "MediaType",
    "ScanJobRecord",
    "ScanJobStatus",
    "StoredMetadataRow",
    "create_schema",
    "execute_with_retry",
    "get_connection",
    "initialize_database",
    "open_connection",
    "transaction",
]
