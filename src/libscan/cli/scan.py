"""scan and resume commands."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from collections.abc import Awaitable, Callable

import click

from libscan.cli import get_db_connection, get_settings
from libscan.config.models import LibscanConfig
from libscan.db.types import MediaType
from libscan.jobs.exceptions import ScanJobError
from libscan.library.exceptions import LibraryError
from libscan.metadata.provider import MetadataProvider
from libscan.metadata.tmdb import TmdbClient, TmdbError
from libscan.scanner.config import ScanConfig
from libscan.scanner.exceptions import ScanConfigurationError, ScanError
from libscan.scanner.orchestrator import ScanOrchestrator, ScanSummary
from libscan.scanner.progress import NullProgressSink, StderrProgressSink
from libscan.scanner.queue import ScanQueue

logger = logging.getLogger(__name__)

# Failures reported as a one-line error instead of a traceback
EXPECTED_ERRORS = (ScanError, ScanJobError, LibraryError, TmdbError)


def _provider_for(ctx: click.Context, settings: LibscanConfig) -> MetadataProvider:
    provider = ctx.find_root().obj.get("provider")
    if provider is not None:
        return provider
    if not settings.provider.api_key:
        raise ScanConfigurationError(
            "No TMDB API key configured. Set LIBSCAN_TMDB_API_KEY or "
            "[provider] api_key in config.toml."
        )
    return TmdbClient(settings.provider)


def _run(
    ctx: click.Context,
    label: str,
    start: Callable[[ScanOrchestrator], Awaitable[ScanSummary]],
    quiet: bool,
) -> ScanSummary:
    """Build an orchestrator and run ``start`` through the scan queue."""
    settings = get_settings(ctx)
    conn: sqlite3.Connection = get_db_connection(ctx)

    async def _go() -> ScanSummary:
        provider = _provider_for(ctx, settings)
        try:
            orchestrator = ScanOrchestrator(
                conn,
                provider,
                settings=settings,
                progress=NullProgressSink() if quiet else StderrProgressSink(),
            )
            queue = ScanQueue()
            return await queue.run(lambda: start(orchestrator), label)
        finally:
            if isinstance(provider, TmdbClient):
                await provider.aclose()

    try:
        return asyncio.run(_go())
    except EXPECTED_ERRORS as e:
        raise click.ClickException(str(e)) from e


def _print_summary(summary: ScanSummary, json_output: bool) -> None:
    if json_output:
        click.echo(json.dumps(summary.to_dict(), indent=2))
        return

    click.echo("")
    click.echo(f"Library:   {summary.library_name} (id {summary.library_id})")
    if summary.job_id:
        click.echo(f"Scan job:  {summary.job_id}")
        click.echo(
            f"Folders:   {summary.folders_processed} processed, "
            f"{summary.folders_failed} failed"
        )
    click.echo(f"Files:     {summary.total_files}")
    click.echo(f"Saved:     {summary.total_saved}")
    if summary.skipped:
        click.echo(f"Skipped:   {summary.skipped} (no metadata)")
    if summary.failed:
        click.secho(f"Failed:    {summary.failed}", fg="red")
    click.echo(
        f"Metadata:  {summary.metadata_from_provider} fetched, "
        f"{summary.metadata_from_cache} cached"
    )
    for warning in summary.warnings:
        click.secho(f"Warning: {warning}", fg="yellow")
    if summary.scan_log_path:
        click.echo(f"Scan log:  {summary.scan_log_path}")


@click.command("scan")
@click.argument("path")
@click.option(
    "--type",
    "media_type",
    type=click.Choice(["movie", "tv"], case_sensitive=False),
    default="movie",
    show_default=True,
    help="What the folder contains.",
)
@click.option("--name", default=None, help="Library name (default: derived from path).")
@click.option(
    "--batched/--full",
    default=None,
    help="Process top-level folders in checkpointed batches (default for tv).",
)
@click.option("--rescan", is_flag=True, help="Refetch metadata already stored.")
@click.option(
    "--max-depth",
    type=click.IntRange(min=1),
    default=None,
    help="Deepest level to accept media at (default: movie 2, tv 4).",
)
@click.option(
    "--extensions",
    default=None,
    help="Comma-separated video extensions, e.g. .mkv,.mp4.",
)
@click.option("--filename-pattern", default=None, help="Regex filenames must match.")
@click.option(
    "--directory-pattern", default=None, help="Regex directory names must match."
)
@click.option(
    "--no-follow-symlinks", is_flag=True, help="Do not descend into symlinked folders."
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress progress output.")
@click.option("--json", "json_output", is_flag=True, help="Print the summary as JSON.")
@click.pass_context
def scan_command(
    ctx: click.Context,
    path: str,
    media_type: str,
    name: str | None,
    batched: bool | None,
    rescan: bool,
    max_depth: int | None,
    extensions: str | None,
    filename_pattern: str | None,
    directory_pattern: str | None,
    no_follow_symlinks: bool,
    quiet: bool,
    json_output: bool,
) -> None:
    """Scan PATH into a library.

    Examples:

        libscan scan /media/Movies

        libscan scan /media/TV --type tv

        libscan scan /media/Movies --full --rescan
    """
    settings = get_settings(ctx)
    try:
        config = ScanConfig.create(
            media_type,
            max_depth=max_depth,
            extensions=extensions.split(",") if extensions else None,
            filename_pattern=filename_pattern,
            directory_pattern=directory_pattern,
            follow_symlinks=not no_follow_symlinks,
            rescan=rescan,
            batched=batched,
            library_name=name,
            depth_limits={
                MediaType.MOVIE: settings.scan.movie_max_depth,
                MediaType.TV: settings.scan.tv_max_depth,
            },
        )
    except ScanConfigurationError as e:
        raise click.ClickException(str(e)) from e

    summary = _run(ctx, path, lambda o: o.scan(path, config), quiet)
    _print_summary(summary, json_output)


@click.command("resume")
@click.argument("job_id")
@click.option("--quiet", "-q", is_flag=True, help="Suppress progress output.")
@click.option("--json", "json_output", is_flag=True, help="Print the summary as JSON.")
@click.pass_context
def resume_command(
    ctx: click.Context, job_id: str, quiet: bool, json_output: bool
) -> None:
    """Resume a failed or pending batched scan job."""
    summary = _run(ctx, f"resume {job_id}", lambda o: o.resume(job_id), quiet)
    _print_summary(summary, json_output)
