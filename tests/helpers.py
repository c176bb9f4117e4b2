"""Filesystem helpers for building library trees in tests."""

from pathlib import Path


def make_files(root: Path, *relative_paths: str, size: int = 0) -> list[Path]:
    """Create files (and their parent folders) below ``root``."""
    created = []
    for relative in relative_paths:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\0" * size)
        created.append(path)
    return created
