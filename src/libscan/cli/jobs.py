"""CLI commands for batched scan jobs."""

import asyncio
import json
import logging
from pathlib import Path

import click

from libscan.cli import get_db_connection, get_settings
from libscan.db.connection import open_connection
from libscan.db.queries import list_scan_jobs
from libscan.db.types import ScanJobRecord, ScanJobStatus
from libscan.jobs.controller import get_scan_job_status
from libscan.jobs.exceptions import ScanJobError
from libscan.jobs.maintenance import cleanup_stale_scan_jobs
from libscan.jobs.sweeper import StaleJobSweepTask

logger = logging.getLogger(__name__)

_STATUS_COLORS = {
    ScanJobStatus.PENDING: "yellow",
    ScanJobStatus.IN_PROGRESS: "cyan",
    ScanJobStatus.COMPLETED: "green",
    ScanJobStatus.FAILED: "red",
}


def _format_job_row(job: ScanJobRecord) -> str:
    status = click.style(
        f"{job.status.value:<12}", fg=_STATUS_COLORS.get(job.status)
    )
    settled = job.processed_count + job.failed_count
    created = job.created_at[:19].replace("T", " ")
    return (
        f"{job.id[:8]}  {status} {job.media_type.value:<6}"
        f"{settled:>5}/{job.total_folders:<5} {created}  {job.root_path}"
    )


@click.group("jobs")
def jobs_group() -> None:
    """Inspect and maintain batched scan jobs.

    Examples:

        # List all scan jobs
        libscan jobs list

        # Show progress of one job
        libscan jobs status <job-id>

        # Fail jobs with no progress for 6 hours
        libscan jobs sweep
    """


@jobs_group.command("list")
@click.option(
    "--status",
    "-s",
    type=click.Choice(
        ["pending", "in_progress", "completed", "failed", "all"], case_sensitive=False
    ),
    default="all",
    help="Filter by job status.",
)
@click.option("--limit", "-n", type=int, default=50, help="Maximum jobs to show.")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def list_jobs(ctx: click.Context, status: str, limit: int, json_output: bool) -> None:
    """List scan jobs, newest first."""
    conn = get_db_connection(ctx)
    status_filter = None if status == "all" else ScanJobStatus(status.upper())
    jobs = list_scan_jobs(conn, status=status_filter, limit=limit)

    if json_output:
        data = [
            {
                "id": job.id,
                "library_id": job.library_id,
                "status": job.status.value,
                "media_type": job.media_type.value,
                "root_path": job.root_path,
                "processed": job.processed_count,
                "failed": job.failed_count,
                "total_folders": job.total_folders,
                "created_at": job.created_at,
            }
            for job in jobs
        ]
        click.echo(json.dumps(data, indent=2))
        return

    if not jobs:
        click.echo("No scan jobs found.")
        return
    click.echo(f"{'ID':<8}  {'STATUS':<12} {'TYPE':<6}{'FOLDERS':>11} CREATED")
    for job in jobs:
        click.echo(_format_job_row(job))


@jobs_group.command("status")
@click.argument("job_id")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def job_status(ctx: click.Context, job_id: str, json_output: bool) -> None:
    """Show progress of one scan job."""
    conn = get_db_connection(ctx)
    try:
        report = get_scan_job_status(conn, job_id)
    except ScanJobError as e:
        raise click.ClickException(str(e)) from e

    if json_output:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    click.echo(f"Job:       {report.job_id}")
    click.echo(
        "Status:    "
        + click.style(report.status.value, fg=_STATUS_COLORS.get(report.status))
    )
    click.echo(f"Root:      {report.root_path} ({report.media_type.value})")
    click.echo(
        f"Progress:  {report.percent_complete}% "
        f"({report.processed_count} processed, {report.failed_count} failed, "
        f"{report.pending_count} pending of {report.total_folders})"
    )
    click.echo(f"Batches:   {report.current_batch}/{report.total_batches}")
    click.echo(f"Saved:     {report.total_items_saved}")
    if report.started_at:
        click.echo(f"Started:   {report.started_at}")
    if report.completed_at:
        click.echo(f"Finished:  {report.completed_at}")
    if report.error_message:
        click.secho(f"Error:     {report.error_message}", fg="red")


@jobs_group.command("sweep")
@click.option(
    "--hours",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Inactivity threshold (default: jobs.stale_timeout_hours).",
)
@click.option(
    "--watch",
    is_flag=True,
    help="Keep running, sweeping every jobs.sweep_interval_minutes.",
)
@click.pass_context
def sweep_jobs(ctx: click.Context, hours: float | None, watch: bool) -> None:
    """Fail in-progress jobs with no batch activity for too long."""
    settings = get_settings(ctx)
    timeout = hours if hours is not None else settings.jobs.stale_timeout_hours
    if watch:
        _watch(settings.database_path, settings.jobs.sweep_interval_minutes, timeout)
        return

    conn = get_db_connection(ctx)
    failed = cleanup_stale_scan_jobs(conn, timeout)
    if not failed:
        click.echo("No stale scan jobs.")
        return
    click.echo(f"Marked {len(failed)} stale scan job(s) as failed:")
    for job_id in failed:
        click.echo(f"  {job_id}")


def _watch(db_path: Path, interval_minutes: float, timeout_hours: float) -> None:
    task = StaleJobSweepTask(
        connection_factory=lambda: open_connection(db_path),
        interval_seconds=interval_minutes * 60,
        timeout_hours=timeout_hours,
    )
    click.echo(
        f"Sweeping stale scan jobs every {interval_minutes:g} minutes "
        "(Ctrl+C to stop)"
    )
    try:
        asyncio.run(task.run())
    except KeyboardInterrupt:
        task.stop()
    click.echo(f"Stopped; {task.total_failed_jobs} job(s) marked failed.")
