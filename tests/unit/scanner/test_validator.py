"""Tests for path validation and scan target checks."""

from pathlib import Path

import pytest

from libscan.db.types import MediaType
from libscan.scanner.identifiers import extract_ids
from libscan.scanner.validator import (
    default_max_depth,
    detect_broad_media_root,
    is_dangerous_root_path,
    validate_media_path,
)

from helpers import make_files


class TestMoviePaths:
    """Depth rules for movie libraries."""

    @pytest.mark.parametrize(
        "relative,valid",
        [
            ("Avengers.mkv", True),
            ("Avengers/Avengers.mkv", True),
            ("Marvel/Avengers/Avengers.mkv", False),
        ],
    )
    def test_depth(self, relative, valid):
        """Movies may sit at most two components below the root."""
        result = validate_media_path(
            "/movies", f"/movies/{relative}", MediaType.MOVIE
        )
        assert result.valid is valid
        if not valid:
            assert result.violation == "depth"
            assert "too deeply nested" in result.reason

    def test_custom_limit(self):
        """An explicit max_depth overrides the default."""
        result = validate_media_path(
            "/movies", "/movies/a/b/c.mkv", MediaType.MOVIE, max_depth=3
        )
        assert result.valid


class TestTvPaths:
    """Depth and structure rules for TV libraries."""

    def test_show_season_episode(self):
        """Show/Season/episode is valid and groups by the show folder."""
        ids = extract_ids("S01E01.mkv")
        result = validate_media_path(
            "/tv", "/tv/Gravity Falls/Season 1/S01E01.mkv", MediaType.TV, ids
        )
        assert result.valid
        assert result.depth == 3
        assert result.show_folder == "Gravity Falls"

    def test_show_episode(self):
        """Show/episode groups by the parent folder."""
        ids = extract_ids("S01E01.mkv")
        result = validate_media_path(
            "/tv", "/tv/Gravity Falls/S01E01.mkv", MediaType.TV, ids
        )
        assert result.valid
        assert result.show_folder == "Gravity Falls"

    def test_file_at_root_rejected(self):
        """Episodes must be inside a show folder."""
        ids = extract_ids("S01E01.mkv")
        result = validate_media_path("/tv", "/tv/S01E01.mkv", MediaType.TV, ids)
        assert not result.valid
        assert result.violation == "structure"

    def test_missing_episode_info_rejected(self):
        """Files without season and episode are structure violations."""
        ids = extract_ids("Pilot.mkv")
        result = validate_media_path("/tv", "/tv/Show/Pilot.mkv", MediaType.TV, ids)
        assert not result.valid
        assert result.violation == "structure"

    def test_too_deep(self):
        """TV files deeper than four components are rejected."""
        ids = extract_ids("S01E01.mkv")
        result = validate_media_path(
            "/tv", "/tv/a/b/c/d/S01E01.mkv", MediaType.TV, ids
        )
        assert not result.valid
        assert result.violation == "depth"

    def test_default_depths(self):
        """Movies default to depth 2, TV to depth 4."""
        assert default_max_depth(MediaType.MOVIE) == 2
        assert default_max_depth(MediaType.TV) == 4


class TestDangerousRoots:
    """Tests for is_dangerous_root_path."""

    @pytest.mark.parametrize(
        "path", ["/", "/home", "/HOME/", "/usr", "C:\\", "c:", "D:", "/Program Files"]
    )
    def test_dangerous(self, path):
        """OS roots, system folders and drive roots are dangerous."""
        assert is_dangerous_root_path(path)

    @pytest.mark.parametrize("path", ["/home/user/movies", "/mnt/media", "/srv/tv"])
    def test_safe(self, path):
        """Folders below a system root are allowed."""
        assert not is_dangerous_root_path(path)


class TestBroadMediaRoot:
    """Tests for detect_broad_media_root."""

    def test_three_collections_is_broad(self, temp_dir: Path):
        """Three subfolders holding video make a broad root."""
        root = temp_dir / "m"
        make_files(
            root,
            "Movies/A/a.mkv",
            "Shows/B/Season 1/S01E01.mkv",
            "Anime/c.mp4",
            "Docs/readme.txt",
        )
        # temp_dir may be deep; only judge the collection count when shallow
        check = detect_broad_media_root(root)
        if len(root.parts) - 1 > 4:
            assert not check.is_broad_media_root
        else:
            assert check.is_broad_media_root
            assert check.detected_collections == ["Anime", "Movies", "Shows"]
            assert "Consider scanning" in check.recommendation

    def test_two_collections_is_not_broad(self, temp_dir: Path):
        """Two collections are not enough to flag the root."""
        root = temp_dir / "m"
        make_files(root, "Action/a.mkv", "Comedy/b.mkv")
        assert not detect_broad_media_root(root).is_broad_media_root

    def test_unreadable_path_is_not_broad(self, temp_dir: Path):
        """A missing path never blocks the scan."""
        assert not detect_broad_media_root(temp_dir / "missing").is_broad_media_root
