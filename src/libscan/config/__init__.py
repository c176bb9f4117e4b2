"""Configuration for libscan.

Modules:
    env: Typed environment variable access
    models: Configuration dataclasses
    builder: Layered assembly of configuration sources
    loader: File loading and get_config()
"""

from libscan.config.env import EnvReader
from libscan.config.loader import (
    ConfigFileError,
    clear_config_cache,
    get_config,
    get_data_dir,
    get_default_config_path,
    load_config_file,
)
from libscan.config.models import (
    JobsConfig,
    LibscanConfig,
    LoggingConfig,
    PathMappingConfig,
    ProviderConfig,
    RateLimitConfig,
    ScanDefaultsConfig,
)

__all__ = [
    "ConfigFileError",
    "EnvReader",
    "JobsConfig",
    "LibscanConfig",
    "LoggingConfig",
    "PathMappingConfig",
    "ProviderConfig",
    "RateLimitConfig",
    "ScanDefaultsConfig",
    "clear_config_cache",
    "get_config",
    "get_data_dir",
    "get_default_config_path",
    "load_config_file",
]
