"""Logging for libscan: configuration, JSON output and scan context tags."""

from libscan.logging.config import configure_logging
from libscan.logging.context import ScanContextFilter, get_scan_context, scan_context
from libscan.logging.handlers import JSONFormatter

__all__ = [
    "JSONFormatter",
    "ScanContextFilter",
    "configure_logging",
    "get_scan_context",
    "scan_context",
]
