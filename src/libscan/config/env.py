"""Typed access to LIBSCAN_* environment variables.

The reader accepts an optional mapping so tests can supply an environment
without touching os.environ.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})


class EnvReader:
    """Read and convert environment variables.

    Unset variables yield the supplied default. Variables that are set but
    cannot be converted log a warning and also yield the default, so a typo
    in the environment never prevents a scan from starting.

    Example:
        reader = EnvReader(env={"LIBSCAN_RATE_LIMIT_MAX": "20"})
        reader.get_int("LIBSCAN_RATE_LIMIT_MAX", 38)  # 20
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env: Mapping[str, str] = env if env is not None else os.environ

    def get_str(self, var: str, default: str | None = None) -> str | None:
        """Return the raw string value of ``var``, or ``default``."""
        value = self._env.get(var)
        if value is None or value == "":
            return default
        return value

    def get_int(self, var: str, default: int | None = None) -> int | None:
        """Return ``var`` parsed as an int, or ``default``."""
        value = self.get_str(var)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning("Ignoring %s=%r: not an integer", var, value)
            return default

    def get_float(self, var: str, default: float | None = None) -> float | None:
        """Return ``var`` parsed as a float, or ``default``."""
        value = self.get_str(var)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning("Ignoring %s=%r: not a number", var, value)
            return default

    def get_bool(self, var: str, default: bool | None = None) -> bool | None:
        """Return ``var`` as a boolean.

        "true", "1", "yes" and "on" (any case) are true; every other
        non-empty value is false.
        """
        value = self.get_str(var)
        if value is None:
            return default
        return value.strip().lower() in _TRUE_VALUES

    def get_path(self, var: str, default: Path | None = None) -> Path | None:
        """Return ``var`` as an expanded Path, or ``default``."""
        value = self.get_str(var)
        if value is None:
            return default
        return Path(value).expanduser()
