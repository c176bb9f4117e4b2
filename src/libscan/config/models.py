"""Configuration dataclasses for libscan.

Each section validates itself in ``__post_init__`` and raises ValueError
on values that would make a scan misbehave.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_PROVIDER_BASE_URL = "https://api.themoviedb.org/3"


@dataclass
class ProviderConfig:
    """Metadata provider (TMDB) connection settings."""

    api_key: str | None = None
    base_url: str = DEFAULT_PROVIDER_BASE_URL
    language: str = "en-US"
    # Per-request timeout in seconds
    timeout: float = 30.0

    def __post_init__(self) -> None:
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        if self.api_key is not None and any(c.isspace() for c in self.api_key):
            raise ValueError("api_key must not contain whitespace")
        if not 1 <= self.timeout <= 300:
            raise ValueError(
                f"timeout must be between 1 and 300 seconds, got {self.timeout}"
            )


@dataclass
class RateLimitConfig:
    """Client-side throttling for provider calls."""

    max_requests: int = 38
    window_seconds: float = 10.0
    concurrency: int = 10
    # Added to computed waits so the oldest timestamp has surely expired
    safety_buffer_seconds: float = 0.1

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError(
                f"max_requests must be at least 1, got {self.max_requests}"
            )
        if self.window_seconds <= 0:
            raise ValueError(
                f"window_seconds must be positive, got {self.window_seconds}"
            )
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.safety_buffer_seconds < 0:
            raise ValueError("safety_buffer_seconds must not be negative")


@dataclass
class ScanDefaultsConfig:
    """Timeouts, retries, batch sizes and depth limits for scans."""

    discovery_timeout: float = 600.0
    discovery_retries: int = 2
    folder_timeout: float = 300.0
    folder_retries: int = 2
    image_timeout: float = 15.0
    tv_batch_size: int = 5
    movie_batch_size: int = 25
    movie_max_depth: int = 2
    tv_max_depth: int = 4
    scan_log_dir: Path | None = None

    def __post_init__(self) -> None:
        for name in ("discovery_timeout", "folder_timeout", "image_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("discovery_retries", "folder_retries"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        for name in ("tv_batch_size", "movie_batch_size"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")
        if self.movie_max_depth < 1 or self.tv_max_depth < 1:
            raise ValueError("max depth values must be at least 1")


@dataclass
class JobsConfig:
    """Scan job housekeeping."""

    # Jobs IN_PROGRESS without batch activity for this long are failed
    stale_timeout_hours: float = 6.0
    # How often the background sweep runs
    sweep_interval_minutes: float = 30.0

    def __post_init__(self) -> None:
        if self.stale_timeout_hours <= 0:
            raise ValueError(
                f"stale_timeout_hours must be positive, got {self.stale_timeout_hours}"
            )
        if self.sweep_interval_minutes <= 0:
            raise ValueError("sweep_interval_minutes must be positive")


@dataclass
class PathMappingConfig:
    """Host/container media path translation."""

    host_media_path: str = "/Volumes/External/Library/Media"
    container_media_path: str = "/media"
    # Presence of this path means we are running inside the container
    container_check_path: str = "/media"


@dataclass
class LoggingConfig:
    """Log output settings."""

    # debug, info, warning, error
    level: str = "info"
    # None = stderr only
    file: Path | None = None
    # text or json
    format: str = "text"
    # Also log to stderr when file is set
    include_stderr: bool = False
    max_bytes: int = 10_485_760
    backup_count: int = 5

    def __post_init__(self) -> None:
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.lower() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.lower() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )


@dataclass
class LibscanConfig:
    """Top-level configuration container."""

    provider: ProviderConfig = field(default_factory=ProviderConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    scan: ScanDefaultsConfig = field(default_factory=ScanDefaultsConfig)
    jobs: JobsConfig = field(default_factory=JobsConfig)
    paths: PathMappingConfig = field(default_factory=PathMappingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    database_path: Path | None = None
