"""Shared test fixtures for libscan."""

import os
import shutil
import sqlite3
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from libscan.config import clear_config_cache
from libscan.db.connection import configure_connection
from libscan.db.schema import initialize_database


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test isolation."""
    dir_path = tempfile.mkdtemp()
    yield Path(dir_path)
    shutil.rmtree(dir_path, ignore_errors=True)


@pytest.fixture
def temp_db(temp_dir: Path) -> Path:
    """Create a temporary database path."""
    return temp_dir / "test_library.db"


@pytest.fixture
def db_conn():
    """In-memory database with the libscan schema."""
    conn = configure_connection(sqlite3.connect(":memory:"))
    initialize_database(conn)
    yield conn
    conn.close()


@pytest.fixture
def media_root(temp_dir: Path) -> Path:
    """Empty directory to build library trees in."""
    root = temp_dir / "media"
    root.mkdir()
    return root


@pytest.fixture(autouse=True)
def libscan_data_dir(temp_dir: Path):
    """Point LIBSCAN_DATA_DIR at a temporary directory for every test.

    Also clears provider credentials from the environment so tests never
    reach the network by accident.
    """
    data_dir = temp_dir / ".libscan"
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "config.toml").write_text('[logging]\nlevel = "info"\n')

    env = {"LIBSCAN_DATA_DIR": str(data_dir)}
    with patch.dict(os.environ, env):
        os.environ.pop("LIBSCAN_TMDB_API_KEY", None)
        os.environ.pop("LIBSCAN_CONFIG_PATH", None)
        clear_config_cache()
        yield data_dir
    clear_config_cache()
