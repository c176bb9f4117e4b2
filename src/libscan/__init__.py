"""libscan: library scanning core for a self-hosted media library manager."""

__version__ = "0.1.0"
