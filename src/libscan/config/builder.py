"""Layered configuration assembly.

A ConfigSource holds the values one layer (file, environment, CLI) sets.
ConfigBuilder applies layers in precedence order and produces the final
LibscanConfig, filling anything left unset with defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from libscan.config.env import EnvReader
from libscan.config.models import (
    DEFAULT_PROVIDER_BASE_URL,
    JobsConfig,
    LibscanConfig,
    LoggingConfig,
    PathMappingConfig,
    ProviderConfig,
    RateLimitConfig,
    ScanDefaultsConfig,
)


@dataclass
class ConfigSource:
    """Configuration values from a single source.

    None means "not specified here" and never overrides a lower layer.
    """

    # Provider
    provider_api_key: str | None = None
    provider_base_url: str | None = None
    provider_language: str | None = None
    provider_timeout: float | None = None

    # Rate limit
    rate_limit_max_requests: int | None = None
    rate_limit_window_seconds: float | None = None
    rate_limit_concurrency: int | None = None
    rate_limit_safety_buffer_seconds: float | None = None

    # Scan defaults
    scan_discovery_timeout: float | None = None
    scan_discovery_retries: int | None = None
    scan_folder_timeout: float | None = None
    scan_folder_retries: int | None = None
    scan_image_timeout: float | None = None
    scan_tv_batch_size: int | None = None
    scan_movie_batch_size: int | None = None
    scan_movie_max_depth: int | None = None
    scan_tv_max_depth: int | None = None
    scan_log_dir: Path | None = None

    # Jobs
    jobs_stale_timeout_hours: float | None = None
    jobs_sweep_interval_minutes: float | None = None

    # Path mapping
    paths_host_media_path: str | None = None
    paths_container_media_path: str | None = None
    paths_container_check_path: str | None = None

    # Logging
    logging_level: str | None = None
    logging_file: Path | None = None
    logging_format: str | None = None
    logging_include_stderr: bool | None = None
    logging_max_bytes: int | None = None
    logging_backup_count: int | None = None

    database_path: Path | None = None


# TOML section -> (key in section, ConfigSource field)
_FILE_SECTIONS: dict[str, tuple[tuple[str, str], ...]] = {
    "provider": (
        ("api_key", "provider_api_key"),
        ("base_url", "provider_base_url"),
        ("language", "provider_language"),
        ("timeout", "provider_timeout"),
    ),
    "rate_limit": (
        ("max_requests", "rate_limit_max_requests"),
        ("window_seconds", "rate_limit_window_seconds"),
        ("concurrency", "rate_limit_concurrency"),
        ("safety_buffer_seconds", "rate_limit_safety_buffer_seconds"),
    ),
    "scan": (
        ("discovery_timeout", "scan_discovery_timeout"),
        ("discovery_retries", "scan_discovery_retries"),
        ("folder_timeout", "scan_folder_timeout"),
        ("folder_retries", "scan_folder_retries"),
        ("image_timeout", "scan_image_timeout"),
        ("tv_batch_size", "scan_tv_batch_size"),
        ("movie_batch_size", "scan_movie_batch_size"),
        ("movie_max_depth", "scan_movie_max_depth"),
        ("tv_max_depth", "scan_tv_max_depth"),
    ),
    "jobs": (
        ("stale_timeout_hours", "jobs_stale_timeout_hours"),
        ("sweep_interval_minutes", "jobs_sweep_interval_minutes"),
    ),
    "paths": (
        ("host_media_path", "paths_host_media_path"),
        ("container_media_path", "paths_container_media_path"),
        ("container_check_path", "paths_container_check_path"),
    ),
    "logging": (
        ("level", "logging_level"),
        ("format", "logging_format"),
        ("include_stderr", "logging_include_stderr"),
        ("max_bytes", "logging_max_bytes"),
        ("backup_count", "logging_backup_count"),
    ),
}


class ConfigBuilder:
    """Builds LibscanConfig by layering ConfigSources.

    Example:
        builder = ConfigBuilder()
        builder.apply(source_from_file(file_config))
        builder.apply(source_from_env(reader))
        builder.apply(cli_source)
        config = builder.build(data_dir)
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def apply(self, source: ConfigSource) -> None:
        """Apply a source; its non-None values override earlier layers."""
        for field_obj in fields(source):
            value = getattr(source, field_obj.name)
            if value is not None:
                self._values[field_obj.name] = value

    def _get(self, key: str, default: Any) -> Any:
        return self._values.get(key, default)

    def build(self, data_dir: Path) -> LibscanConfig:
        """Build the final configuration.

        Args:
            data_dir: Base data directory, used for path defaults.

        Returns:
            Complete LibscanConfig.

        Raises:
            ValueError: If any section fails validation.
        """
        provider = ProviderConfig(
            api_key=self._get("provider_api_key", None),
            base_url=self._get("provider_base_url", DEFAULT_PROVIDER_BASE_URL),
            language=self._get("provider_language", "en-US"),
            timeout=self._get("provider_timeout", 30.0),
        )

        rate_limit = RateLimitConfig(
            max_requests=self._get("rate_limit_max_requests", 38),
            window_seconds=self._get("rate_limit_window_seconds", 10.0),
            concurrency=self._get("rate_limit_concurrency", 10),
            safety_buffer_seconds=self._get("rate_limit_safety_buffer_seconds", 0.1),
        )

        scan = ScanDefaultsConfig(
            discovery_timeout=self._get("scan_discovery_timeout", 600.0),
            discovery_retries=self._get("scan_discovery_retries", 2),
            folder_timeout=self._get("scan_folder_timeout", 300.0),
            folder_retries=self._get("scan_folder_retries", 2),
            image_timeout=self._get("scan_image_timeout", 15.0),
            tv_batch_size=self._get("scan_tv_batch_size", 5),
            movie_batch_size=self._get("scan_movie_batch_size", 25),
            movie_max_depth=self._get("scan_movie_max_depth", 2),
            tv_max_depth=self._get("scan_tv_max_depth", 4),
            scan_log_dir=self._get("scan_log_dir", data_dir / "logs" / "scans"),
        )

        jobs = JobsConfig(
            stale_timeout_hours=self._get("jobs_stale_timeout_hours", 6.0),
            sweep_interval_minutes=self._get("jobs_sweep_interval_minutes", 30.0),
        )

        defaults = PathMappingConfig()
        paths = PathMappingConfig(
            host_media_path=self._get(
                "paths_host_media_path", defaults.host_media_path
            ),
            container_media_path=self._get(
                "paths_container_media_path", defaults.container_media_path
            ),
            container_check_path=self._get(
                "paths_container_check_path", defaults.container_check_path
            ),
        )

        logging_config = LoggingConfig(
            level=self._get("logging_level", "info"),
            file=self._get("logging_file", None),
            format=self._get("logging_format", "text"),
            include_stderr=self._get("logging_include_stderr", False),
            max_bytes=self._get("logging_max_bytes", 10_485_760),
            backup_count=self._get("logging_backup_count", 5),
        )

        return LibscanConfig(
            provider=provider,
            rate_limit=rate_limit,
            scan=scan,
            jobs=jobs,
            paths=paths,
            logging=logging_config,
            database_path=self._get("database_path", data_dir / "library.db"),
        )


def source_from_file(file_config: dict[str, Any]) -> ConfigSource:
    """Create a ConfigSource from a parsed config.toml dict."""
    values: dict[str, Any] = {}
    for section_name, keys in _FILE_SECTIONS.items():
        section = file_config.get(section_name, {})
        for key, attr in keys:
            if key in section:
                values[attr] = section[key]

    scan_log_dir = file_config.get("scan", {}).get("log_dir")
    if scan_log_dir:
        values["scan_log_dir"] = Path(scan_log_dir).expanduser()
    log_file = file_config.get("logging", {}).get("file")
    if log_file:
        values["logging_file"] = Path(log_file).expanduser()
    database_path = file_config.get("database_path")
    if database_path:
        values["database_path"] = Path(database_path).expanduser()

    return ConfigSource(**values)


def source_from_env(reader: EnvReader) -> ConfigSource:
    """Create a ConfigSource from LIBSCAN_* environment variables."""
    return ConfigSource(
        provider_api_key=reader.get_str("LIBSCAN_TMDB_API_KEY"),
        provider_base_url=reader.get_str("LIBSCAN_TMDB_BASE_URL"),
        provider_language=reader.get_str("LIBSCAN_TMDB_LANGUAGE"),
        provider_timeout=reader.get_float("LIBSCAN_TMDB_TIMEOUT"),
        rate_limit_max_requests=reader.get_int("LIBSCAN_RATE_LIMIT_MAX"),
        rate_limit_window_seconds=reader.get_float("LIBSCAN_RATE_LIMIT_WINDOW"),
        rate_limit_concurrency=reader.get_int("LIBSCAN_RATE_LIMIT_CONCURRENCY"),
        scan_folder_timeout=reader.get_float("LIBSCAN_FOLDER_TIMEOUT"),
        scan_discovery_timeout=reader.get_float("LIBSCAN_DISCOVERY_TIMEOUT"),
        scan_log_dir=reader.get_path("LIBSCAN_SCAN_LOG_DIR"),
        jobs_stale_timeout_hours=reader.get_float("LIBSCAN_STALE_JOB_HOURS"),
        paths_host_media_path=reader.get_str("HOST_MEDIA_PATH"),
        paths_container_media_path=reader.get_str("CONTAINER_MEDIA_PATH"),
        paths_container_check_path=reader.get_str("DOCKER_CHECK_PATH"),
        logging_level=reader.get_str("LIBSCAN_LOG_LEVEL"),
        logging_file=reader.get_path("LIBSCAN_LOG_FILE"),
        logging_format=reader.get_str("LIBSCAN_LOG_FORMAT"),
        database_path=reader.get_path("LIBSCAN_DATABASE_PATH"),
    )
