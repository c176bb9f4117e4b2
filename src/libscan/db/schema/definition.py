"""Schema DDL for the libscan database.

Tables mirror the scan's write targets: libraries, media records and
their type-specific children, external ids, genres, people, and the
scan job checkpoint tables.
"""

import sqlite3

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS _meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS libraries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    slug TEXT UNIQUE NOT NULL,
    library_path TEXT NOT NULL,
    library_type TEXT NOT NULL CHECK (library_type IN ('MOVIE', 'TV_SHOW')),
    created_at TEXT NOT NULL,   -- ISO 8601 UTC
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS media (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    media_type TEXT NOT NULL CHECK (media_type IN ('MOVIE', 'TV_SHOW')),
    title TEXT NOT NULL,
    description TEXT,
    poster_url TEXT,
    plain_poster_url TEXT,
    backdrop_url TEXT,
    logo_url TEXT,
    release_date TEXT,          -- YYYY-MM-DD
    rating REAL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS external_ids (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    media_id INTEGER NOT NULL REFERENCES media(id) ON DELETE CASCADE,
    source TEXT NOT NULL CHECK (source IN ('TMDB', 'IMDB', 'TVDB')),
    external_id TEXT NOT NULL,
    UNIQUE (source, external_id)
);

CREATE TABLE IF NOT EXISTS genres (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL,
    slug TEXT UNIQUE NOT NULL
);

CREATE TABLE IF NOT EXISTS media_genres (
    media_id INTEGER NOT NULL REFERENCES media(id) ON DELETE CASCADE,
    genre_id INTEGER NOT NULL REFERENCES genres(id) ON DELETE CASCADE,
    PRIMARY KEY (media_id, genre_id)
);

CREATE TABLE IF NOT EXISTS movies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    media_id INTEGER UNIQUE NOT NULL REFERENCES media(id) ON DELETE CASCADE,
    duration INTEGER,           -- minutes
    file_path TEXT,
    file_size INTEGER,
    file_modified_at TEXT
);

CREATE TABLE IF NOT EXISTS people (
    id TEXT PRIMARY KEY,        -- provider person id
    name TEXT NOT NULL,
    profile_url TEXT
);

CREATE TABLE IF NOT EXISTS media_people (
    media_id INTEGER NOT NULL REFERENCES media(id) ON DELETE CASCADE,
    person_id TEXT NOT NULL REFERENCES people(id) ON DELETE CASCADE,
    role TEXT NOT NULL,
    PRIMARY KEY (media_id, person_id, role)
);

CREATE TABLE IF NOT EXISTS tv_shows (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    media_id INTEGER UNIQUE NOT NULL REFERENCES media(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS seasons (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tv_show_id INTEGER NOT NULL REFERENCES tv_shows(id) ON DELETE CASCADE,
    season_number INTEGER NOT NULL,
    UNIQUE (tv_show_id, season_number)
);

CREATE TABLE IF NOT EXISTS episodes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    season_id INTEGER NOT NULL REFERENCES seasons(id) ON DELETE CASCADE,
    episode_number INTEGER NOT NULL,
    title TEXT NOT NULL,
    file_title TEXT,
    duration INTEGER,
    air_date TEXT,
    still_path TEXT,
    file_path TEXT,
    file_size INTEGER,
    file_modified_at TEXT,
    UNIQUE (season_id, episode_number)
);

CREATE TABLE IF NOT EXISTS media_libraries (
    media_id INTEGER NOT NULL REFERENCES media(id) ON DELETE CASCADE,
    library_id INTEGER NOT NULL REFERENCES libraries(id) ON DELETE CASCADE,
    created_at TEXT NOT NULL,
    PRIMARY KEY (media_id, library_id)
);

CREATE TABLE IF NOT EXISTS scan_jobs (
    id TEXT PRIMARY KEY,        -- UUIDv4
    library_id INTEGER NOT NULL REFERENCES libraries(id) ON DELETE CASCADE,
    root_path TEXT NOT NULL,
    media_type TEXT NOT NULL CHECK (media_type IN ('movie', 'tv')),
    status TEXT NOT NULL DEFAULT 'PENDING'
        CHECK (status IN ('PENDING', 'IN_PROGRESS', 'COMPLETED', 'FAILED')),
    batch_size INTEGER NOT NULL CHECK (batch_size >= 1),
    total_folders INTEGER NOT NULL,
    total_batches INTEGER NOT NULL,
    current_batch INTEGER NOT NULL DEFAULT 0,
    processed_count INTEGER NOT NULL DEFAULT 0,
    failed_count INTEGER NOT NULL DEFAULT 0,
    total_items_saved INTEGER NOT NULL DEFAULT 0,
    started_at TEXT,
    last_batch_at TEXT,
    completed_at TEXT,
    error_message TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- One row per top-level folder; state partitions the folder set.
-- position keeps discovery order, settled_seq keeps the order folders
-- left the pending set.
CREATE TABLE IF NOT EXISTS scan_job_folders (
    job_id TEXT NOT NULL REFERENCES scan_jobs(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    position INTEGER NOT NULL,
    state TEXT NOT NULL DEFAULT 'pending'
        CHECK (state IN ('pending', 'processed', 'failed')),
    settled_seq INTEGER,
    PRIMARY KEY (job_id, name)
);

CREATE INDEX IF NOT EXISTS idx_external_ids_media ON external_ids(media_id);
CREATE INDEX IF NOT EXISTS idx_media_libraries_library
    ON media_libraries(library_id);
CREATE INDEX IF NOT EXISTS idx_scan_jobs_status ON scan_jobs(status);
CREATE INDEX IF NOT EXISTS idx_scan_jobs_library ON scan_jobs(library_id);
CREATE INDEX IF NOT EXISTS idx_scan_job_folders_state
    ON scan_job_folders(job_id, state, position);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they don't exist.

    Args:
        conn: An open database connection.
    """
    conn.executescript(SCHEMA_SQL)
    conn.execute(
        "INSERT OR IGNORE INTO _meta (key, value) VALUES ('schema_version', ?)",
        (str(SCHEMA_VERSION),),
    )
    # executescript() committed the DDL; the INSERT opened a new transaction
    conn.commit()
