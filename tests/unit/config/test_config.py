"""Tests for configuration loading and layering."""

from pathlib import Path

import pytest

from libscan.config import (
    ConfigFileError,
    EnvReader,
    get_config,
    load_config_file,
)
from libscan.config.builder import ConfigBuilder, ConfigSource, source_from_file
from libscan.config.models import RateLimitConfig, ScanDefaultsConfig


class TestEnvReader:
    """Tests for EnvReader conversions."""

    def test_conversions(self):
        reader = EnvReader(
            env={"I": "20", "F": "1.5", "B": "Yes", "P": "~/x", "BAD": "abc", "E": ""}
        )
        assert reader.get_int("I") == 20
        assert reader.get_float("F") == 1.5
        assert reader.get_bool("B") is True
        assert reader.get_path("P") == Path("~/x").expanduser()
        assert reader.get_int("BAD", 7) == 7
        assert reader.get_str("E", "default") == "default"
        assert reader.get_str("MISSING") is None


class TestLayering:
    """File < environment < CLI precedence."""

    def test_defaults(self, libscan_data_dir: Path):
        config = get_config(env_reader=EnvReader(env={}))
        assert config.rate_limit.max_requests == 38
        assert config.scan.tv_batch_size == 5
        assert config.database_path == libscan_data_dir / "library.db"
        assert config.scan.scan_log_dir == libscan_data_dir / "logs" / "scans"

    def test_env_overrides_file(self, temp_dir: Path):
        config_path = temp_dir / "config.toml"
        config_path.write_text(
            "[rate_limit]\nmax_requests = 20\nconcurrency = 4\n"
            "[provider]\napi_key = \"from-file\"\n"
        )
        reader = EnvReader(env={"LIBSCAN_RATE_LIMIT_MAX": "30"})

        config = get_config(config_path, env_reader=reader)

        assert config.rate_limit.max_requests == 30
        assert config.rate_limit.concurrency == 4
        assert config.provider.api_key == "from-file"

    def test_cli_overrides_env(self, temp_dir: Path):
        reader = EnvReader(
            env={"LIBSCAN_TMDB_API_KEY": "env-key", "LIBSCAN_LOG_LEVEL": "debug"}
        )
        config = get_config(
            temp_dir / "missing.toml",
            api_key="cli-key",
            log_level="warning",
            env_reader=reader,
        )
        assert config.provider.api_key == "cli-key"
        assert config.logging.level == "warning"

    def test_file_paths(self):
        source = source_from_file(
            {"scan": {"log_dir": "/var/log/libscan"}, "database_path": "/data/lib.db"}
        )
        assert source.scan_log_dir == Path("/var/log/libscan")
        assert source.database_path == Path("/data/lib.db")

    def test_none_never_overrides(self, temp_dir: Path):
        builder = ConfigBuilder()
        builder.apply(ConfigSource(scan_folder_timeout=42.0))
        builder.apply(ConfigSource(scan_folder_timeout=None))
        assert builder.build(temp_dir).scan.folder_timeout == 42.0


class TestConfigFile:
    """Tests for load_config_file."""

    def test_invalid_toml_lenient(self, temp_dir: Path):
        path = temp_dir / "bad.toml"
        path.write_text("[scan\n")
        assert load_config_file(path) == {}

    def test_invalid_toml_strict(self, temp_dir: Path):
        path = temp_dir / "bad.toml"
        path.write_text("[scan\n")
        with pytest.raises(ConfigFileError):
            load_config_file(path, strict=True)


class TestValidation:
    """Section validation."""

    def test_rate_limit(self):
        with pytest.raises(ValueError, match="max_requests"):
            RateLimitConfig(max_requests=0)

    def test_scan_defaults(self):
        with pytest.raises(ValueError, match="folder_timeout"):
            ScanDefaultsConfig(folder_timeout=0)
        with pytest.raises(ValueError, match="tv_batch_size"):
            ScanDefaultsConfig(tv_batch_size=0)

    def test_invalid_value_from_layers(self, temp_dir: Path):
        """Invalid layered values surface as ValueError at build time."""
        builder = ConfigBuilder()
        builder.apply(ConfigSource(logging_level="verbose"))
        with pytest.raises(ValueError, match="level"):
            builder.build(temp_dir)
