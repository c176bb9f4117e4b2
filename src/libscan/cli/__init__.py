"""Command line interface for libscan."""

import logging
import sqlite3
from pathlib import Path

import click

from libscan.config import ConfigFileError, LibscanConfig, get_config
from libscan.db.connection import open_connection
from libscan.db.schema import SchemaVersionError, initialize_database
from libscan.logging import configure_logging

logger = logging.getLogger(__name__)


def get_settings(ctx: click.Context) -> LibscanConfig:
    """Effective configuration stored on the root context."""
    return ctx.find_root().obj["settings"]


def get_db_connection(ctx: click.Context) -> sqlite3.Connection:
    """Open (once per invocation) the library database.

    A connection already present in ``ctx.obj["db_conn"]`` is reused as
    is; tests pass an in-memory database this way.

    Raises:
        click.ClickException: If the database cannot be opened.
    """
    obj = ctx.find_root().obj
    conn = obj.get("db_conn")
    if conn is not None:
        return conn

    db_path = obj["settings"].database_path
    try:
        conn = open_connection(db_path)
        initialize_database(conn)
    except (sqlite3.Error, OSError, SchemaVersionError) as e:
        raise click.ClickException(f"Cannot open database {db_path}: {e}") from e
    obj["db_conn"] = conn
    ctx.find_root().call_on_close(conn.close)
    return conn


@click.group()
@click.version_option(package_name="libscan")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.libscan/config.toml).",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: info).",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Override log file path.",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Use JSON log format.",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """libscan - scan media folders into a metadata-enriched library."""
    ctx.ensure_object(dict)

    # Preserve settings passed in by tests; they also own logging setup
    if "settings" in ctx.obj:
        return

    try:
        settings = get_config(
            config_path,
            log_level=log_level,
            log_file=log_file,
            log_format="json" if log_json else None,
            strict=True,
        )
    except (ConfigFileError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e

    configure_logging(settings.logging)
    logger.debug("Using database %s", settings.database_path)
    ctx.obj["settings"] = settings


def _register_commands() -> None:
    from libscan.cli.jobs import jobs_group
    from libscan.cli.scan import resume_command, scan_command

    main.add_command(scan_command)
    main.add_command(resume_command)
    main.add_command(jobs_group)


_register_commands()
