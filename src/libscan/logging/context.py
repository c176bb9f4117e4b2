"""Scan context for log records.

Concurrent folder work inside one scan interleaves its log lines. The
context variables here carry the library, job and folder being processed
so every record can be attributed without threading ids through every
call.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_library_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "library_id", default=None
)
_job_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "scan_job_id", default=None
)
_folder: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "scan_folder", default=None
)


def get_scan_context() -> tuple[str | None, str | None, str | None]:
    """Return (library_id, job_id, folder); any may be None."""
    return _library_id.get(), _job_id.get(), _folder.get()


@contextmanager
def scan_context(
    library_id: str | None = None,
    job_id: str | None = None,
    folder: str | None = None,
) -> Generator[None, None, None]:
    """Set scan context for the duration of the block.

    Arguments left as None inherit the enclosing context, so nested blocks
    can add a folder to an existing library/job context.

    Example:
        with scan_context(library_id=lib.id, job_id=job.id):
            with scan_context(folder="Inception (2010)"):
                logger.info("Walking folder")
    """
    tokens = []
    if library_id is not None:
        tokens.append((_library_id, _library_id.set(library_id)))
    if job_id is not None:
        tokens.append((_job_id, _job_id.set(job_id)))
    if folder is not None:
        tokens.append((_folder, _folder.set(folder)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def _short(value: str, length: int = 8) -> str:
    return value if len(value) <= length else value[:length]


class ScanContextFilter(logging.Filter):
    """Inject scan context into log records.

    Adds ``library_id``, ``scan_job_id`` and ``scan_folder`` for the JSON
    formatter and a compact ``scan_tag`` such as ``[L:3f2a J:9c1e F:Alien] ``
    for the text format. The tag is empty outside a scan.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        library_id, job_id, folder = get_scan_context()
        record.library_id = library_id
        record.scan_job_id = job_id
        record.scan_folder = folder

        parts = []
        if library_id:
            parts.append(f"L:{_short(library_id)}")
        if job_id:
            parts.append(f"J:{_short(job_id)}")
        if folder:
            parts.append(f"F:{folder}")
        record.scan_tag = f"[{' '.join(parts)}] " if parts else ""
        return True
