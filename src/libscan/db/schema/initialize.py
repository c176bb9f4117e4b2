"""Database initialization."""

import logging
import sqlite3

from .definition import SCHEMA_VERSION, create_schema
from .version import get_schema_version

logger = logging.getLogger(__name__)


class SchemaVersionError(Exception):
    """Database was created by a newer libscan."""


def initialize_database(conn: sqlite3.Connection) -> None:
    """Create the schema on a fresh database and check the version otherwise.

    Args:
        conn: An open database connection.

    Raises:
        SchemaVersionError: If the database schema is newer than this build.
    """
    version = get_schema_version(conn)
    if version is None:
        logger.info("Creating libscan schema v%d", SCHEMA_VERSION)
        create_schema(conn)
        return
    if version > SCHEMA_VERSION:
        raise SchemaVersionError(
            f"Database schema v{version} is newer than supported v{SCHEMA_VERSION}"
        )
    # Same or older version: CREATE IF NOT EXISTS fills in anything missing
    create_schema(conn)
