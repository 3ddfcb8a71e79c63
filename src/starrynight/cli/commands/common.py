"""Helpers shared by the CLI commands."""

import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from starrynight.exceptions import format_error_for_display
from starrynight.models import CoordinatorConfig

logger = logging.getLogger(__name__)


def load_config(ctx: click.Context) -> CoordinatorConfig:
    """Coordinator config from --config, or defaults when the file is missing. Never writes."""
    return CoordinatorConfig.load_or_default(ctx.obj.get("config_path"))


def report_error(ctx: click.Context, error: Exception) -> NoReturn:
    """Print a clean error message (no traceback) and exit with code 1."""
    logger.error(f"Command failed: {error}", exc_info=True)
    user_message, recovery_hint = format_error_for_display(error)

    click.echo("\n" + "=" * 70, err=True)
    click.echo(f"ERROR: {user_message}", err=True)
    click.echo("=" * 70, err=True)

    if recovery_hint:
        click.echo(f"\n{recovery_hint}", err=True)

    log_path: Path | None = ctx.obj.get("log_path")
    if log_path:
        click.echo(f"\nFor details, check the log file: {log_path}", err=True)
    click.echo("For logging options, run: starrynight --help", err=True)
    sys.exit(1)
