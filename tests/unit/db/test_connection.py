"""Tests for connection helpers and schema initialization."""

import sqlite3

import pytest

from libscan.db.connection import (
    DatabaseLockedError,
    execute_with_retry,
    get_connection,
    transaction,
)
from libscan.db.queries import get_library, upsert_library
from libscan.db.schema import (
    SCHEMA_VERSION,
    SchemaVersionError,
    get_schema_version,
    initialize_database,
)
from libscan.db.types import MediaType


class TestTransaction:
    """Tests for the transaction context manager."""

    def test_commits_on_success(self, db_conn):
        with transaction(db_conn):
            library = upsert_library(db_conn, "Movies", "movies", "/m", MediaType.MOVIE)
        assert not db_conn.in_transaction
        assert get_library(db_conn, library.id).name == "Movies"

    def test_rolls_back_on_error(self, db_conn):
        with pytest.raises(RuntimeError):
            with transaction(db_conn):
                upsert_library(db_conn, "Movies", "movies", "/m", MediaType.MOVIE)
                raise RuntimeError("boom")
        count = db_conn.execute("SELECT COUNT(*) FROM libraries").fetchone()[0]
        assert count == 0


class TestExecuteWithRetry:
    """Tests for execute_with_retry."""

    def test_retries_lock_errors(self):
        attempts = []

        def work():
            attempts.append(1)
            if len(attempts) < 3:
                raise sqlite3.OperationalError("database is locked")
            return "done"

        assert execute_with_retry(work, base_delay=0.001) == "done"
        assert len(attempts) == 3

    def test_gives_up(self):
        def work():
            raise sqlite3.OperationalError("database is locked")

        with pytest.raises(DatabaseLockedError):
            execute_with_retry(work, max_retries=1, base_delay=0.001)

    def test_other_errors_propagate(self):
        def work():
            raise sqlite3.OperationalError("no such table: nope")

        with pytest.raises(sqlite3.OperationalError, match="no such table"):
            execute_with_retry(work, base_delay=0.001)


class TestSchema:
    """Schema creation and versioning."""

    def test_initialize_is_idempotent(self, temp_db):
        with get_connection(temp_db) as conn:
            initialize_database(conn)
            initialize_database(conn)
            assert get_schema_version(conn) == SCHEMA_VERSION

    def test_upsert_library_by_slug(self, db_conn):
        """Upserting the same slug updates the existing library."""
        first = upsert_library(db_conn, "Movies", "movies", "/a", MediaType.MOVIE)
        second = upsert_library(db_conn, "Films", "movies", "/b", MediaType.MOVIE)
        assert second.id == first.id
        assert second.name == "Films"
        assert second.library_path == "/b"

    def test_newer_schema_rejected(self, temp_db):
        with get_connection(temp_db) as conn:
            initialize_database(conn)
            conn.execute(
                "UPDATE _meta SET value = ? WHERE key = 'schema_version'",
                (str(SCHEMA_VERSION + 1),),
            )
            conn.commit()
            with pytest.raises(SchemaVersionError):
                initialize_database(conn)
