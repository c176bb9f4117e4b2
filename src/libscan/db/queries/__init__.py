"""Database query operations.

Module organization:
- helpers.py: Timestamps and row mapping
- libraries.py: Library upsert and lookup
- media.py: Media, external id, movie, person, TV show/season/episode and
  library link operations
- genres.py: Genre upsert and linking
- scan_jobs.py: Scan job checkpoint operations

None of these functions commit; callers own transactions.
"""

from .genres import get_media_genre_names, link_media_genre, upsert_genre
from .libraries import get_library, library_exists, upsert_library
from .media import (
    count_library_links,
    find_existing_metadata,
    find_media_by_external_id,
    get_episode,
    get_media,
    get_movie_by_media_id,
    insert_external_id,
    insert_media,
    link_media_library,
    link_media_person,
    update_media,
    upsert_episode,
    upsert_external_id,
    upsert_movie,
    upsert_person,
    upsert_season,
    upsert_tv_show,
)
from .scan_jobs import (
    count_folders,
    fail_scan_jobs,
    find_stale_scan_jobs,
    get_pending_folders,
    get_scan_job,
    insert_scan_job,
    list_scan_jobs,
    settle_folders,
    update_scan_job,
)

__all__ = [
    "count_folders",
    "count_library_links",
    "fail_scan_jobs",
    "find_existing_metadata",
    "find_media_by_external_id",
    "find_stale_scan_jobs",
    "get_episode",
    "get_library",
    "get_media",
    "get_media_genre_names",
    "get_movie_by_media_id",
    "get_pending_folders",
    "get_scan_job",
    "insert_external_id",
    "insert_media",
    "insert_scan_job",
    "library_exists",
    "link_media_genre",
    "link_media_library",
    "link_media_person",
    "list_scan_jobs",
    "settle_folders",
    "update_media",
    "update_scan_job",
    "upsert_episode",
    "upsert_external_id",
    "upsert_genre",
    "upsert_library",
    "upsert_movie",
    "upsert_person",
    "upsert_season",
    "upsert_tv_show",
]
