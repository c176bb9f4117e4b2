"""Configuration loading with precedence handling.

Precedence (highest to lowest):
1. CLI arguments (passed to get_config)
2. Environment variables (LIBSCAN_*, plus the container path variables
   HOST_MEDIA_PATH, CONTAINER_MEDIA_PATH and DOCKER_CHECK_PATH)
3. Config file (~/.libscan/config.toml)
4. Default values

Environment variables:
- LIBSCAN_CONFIG_PATH: Path to config file (overrides default location)
- LIBSCAN_DATA_DIR: Data directory (overrides ~/.libscan/)
- LIBSCAN_TMDB_API_KEY: Metadata provider API key
- LIBSCAN_DATABASE_PATH: Path to database file
"""

from __future__ import annotations

import logging
import os
import threading
import tomllib
from pathlib import Path

from libscan.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from libscan.config.env import EnvReader
from libscan.config.models import LibscanConfig

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".libscan"

# path -> (parsed dict, mtime)
_config_cache: dict[Path, tuple[dict, float]] = {}
_config_cache_lock = threading.Lock()


class ConfigFileError(Exception):
    """Config file exists but cannot be parsed."""


def get_data_dir() -> Path:
    """Return the libscan data directory (database, config, scan logs)."""
    env_path = os.environ.get("LIBSCAN_DATA_DIR")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_DATA_DIR


def get_default_config_path() -> Path:
    """Return the config file path, honoring LIBSCAN_CONFIG_PATH."""
    env_path = os.environ.get("LIBSCAN_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return get_data_dir() / "config.toml"


def load_config_file(path: Path | None = None, *, strict: bool = False) -> dict:
    """Load the TOML config file.

    Results are cached and reloaded when the file's mtime changes.

    Args:
        path: Config file path. Defaults to get_default_config_path().
        strict: Raise ConfigFileError on parse failures instead of
            returning an empty dict.

    Returns:
        Parsed configuration. Empty if the file doesn't exist.

    Raises:
        ConfigFileError: When strict is set and the file is invalid.
    """
    if path is None:
        path = get_default_config_path()

    try:
        current_mtime = path.stat().st_mtime
    except FileNotFoundError:
        return {}

    with _config_cache_lock:
        cached = _config_cache.get(path)
        if cached is not None and cached[1] == current_mtime:
            return cached[0]

        try:
            with path.open("rb") as f:
                result = tomllib.load(f)
        except (tomllib.TOMLDecodeError, OSError) as e:
            if strict:
                raise ConfigFileError(f"Cannot parse config file {path}: {e}") from e
            logger.warning("Ignoring unreadable config file %s: %s", path, e)
            result = {}

        _config_cache[path] = (result, current_mtime)
        return result


def clear_config_cache() -> None:
    """Forget cached config files. Mostly useful in tests."""
    with _config_cache_lock:
        _config_cache.clear()


def get_config(
    config_path: Path | None = None,
    # CLI overrides (highest precedence)
    database_path: Path | None = None,
    api_key: str | None = None,
    log_level: str | None = None,
    log_file: Path | None = None,
    log_format: str | None = None,
    env_reader: EnvReader | None = None,
    *,
    strict: bool = False,
) -> LibscanConfig:
    """Get the effective configuration.

    Args:
        config_path: Config file path (overrides LIBSCAN_CONFIG_PATH).
        database_path: CLI override for the database file.
        api_key: CLI override for the provider API key.
        log_level: CLI override for the log level.
        log_file: CLI override for the log file.
        log_format: CLI override for the log format.
        env_reader: Optional EnvReader for testing.
        strict: Raise ConfigFileError on config file parse failures.

    Returns:
        LibscanConfig with all layers merged.
    """
    reader = env_reader or EnvReader()
    file_config = load_config_file(config_path, strict=strict)

    builder = ConfigBuilder()
    builder.apply(source_from_file(file_config))
    builder.apply(source_from_env(reader))
    builder.apply(
        ConfigSource(
            database_path=database_path,
            provider_api_key=api_key,
            logging_level=log_level,
            logging_file=log_file,
            logging_format=log_format,
        )
    )
    return builder.build(get_data_dir())
