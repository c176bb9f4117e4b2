"""Tests for ScanConfig.create."""

import pytest

from libscan.db.types import MediaType
from libscan.scanner.config import ScanConfig
from libscan.scanner.exceptions import ScanConfigurationError


class TestScanConfigCreate:
    """Validation and defaults of scan options."""

    def test_tv_defaults(self):
        """TV scans default to depth 4 and batched mode."""
        config = ScanConfig.create("TV")
        assert config.media_type is MediaType.TV
        assert config.max_depth == 4
        assert config.batched is True

    def test_movie_defaults(self):
        """Movie scans default to depth 2 and full mode."""
        config = ScanConfig.create(MediaType.MOVIE)
        assert config.max_depth == 2
        assert config.batched is False
        assert ".mkv" in config.extensions

    def test_depth_limits_from_settings(self):
        """Configured per-type depth limits replace the defaults."""
        config = ScanConfig.create(MediaType.MOVIE, depth_limits={MediaType.MOVIE: 3})
        assert config.max_depth == 3

    def test_unknown_media_type(self):
        """Unknown media types are rejected."""
        with pytest.raises(ScanConfigurationError, match="Unknown media type"):
            ScanConfig.create("music")

    def test_invalid_regex(self):
        """An invalid pattern is a configuration error."""
        with pytest.raises(ScanConfigurationError, match="Invalid filename pattern"):
            ScanConfig.create(MediaType.MOVIE, filename_pattern="(")

    def test_empty_extensions(self):
        """At least one extension is required."""
        with pytest.raises(ScanConfigurationError):
            ScanConfig.create(MediaType.MOVIE, extensions=[])

    def test_non_positive_depth(self):
        """Depth must be at least 1."""
        with pytest.raises(ScanConfigurationError):
            ScanConfig.create(MediaType.MOVIE, max_depth=0)

    def test_directory_pattern_ignores_case(self):
        """Directory patterns match case-insensitively."""
        config = ScanConfig.create(MediaType.TV, directory_pattern="^gravity")
        assert config.should_include_directory("Gravity Falls")
        assert not config.should_include_directory("Bluey")
        assert config.should_include_file("anything.mkv")
