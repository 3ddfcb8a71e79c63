"""Main CLI entry point."""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

import click

from .commands import events_group, health, run, settings_group

logger = logging.getLogger(__name__)


def resolve_log_path(debug: bool, log_file: Optional[Path]) -> Path:
    """Where setup_logging() writes for the given flags."""
    if log_file:
        return log_file
    if debug:
        # Debug mode: log to current directory
        return Path.cwd() / "starrynight-debug.log"
    return Path.home() / ".starrynight" / "logs" / "starrynight.log"


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

_VERBOSITY = {0: logging.WARNING, 1: logging.INFO}

_file_handler: Optional[logging.Handler] = None


def setup_logging(verbose: int, debug: bool, log_file: Optional[Path], log_level: str) -> None:
    """
    Send log records to a rotating file.

    The level comes from -v/-vv and --debug, unless --log-file is given,
    in which case --log-level decides. Calling this again replaces the
    handler installed by the previous call.
    """
    global _file_handler

    if log_file:
        level = logging.getLevelName(log_level.upper())
    elif debug:
        level = logging.DEBUG
    else:
        level = _VERBOSITY.get(verbose, logging.DEBUG)

    log_path = resolve_log_path(debug, log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    root_logger = logging.getLogger()
    if _file_handler is not None:
        root_logger.removeHandler(_file_handler)
        _file_handler.close()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    _file_handler = handler

    logger.info(f"Logging configured: level={logging.getLevelName(level)}, file={log_path}")


@click.group()
@click.pass_context
@click.version_option(version="0.1.0", prog_name="starrynight")
@click.option(
    '--config',
    'config_path',
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help='Coordinator config file (default: ~/.starrynight/config.json)'
)
@click.option(
    '-v', '--verbose',
    count=True,
    help='Increase verbosity (-v: INFO, -vv: DEBUG)'
)
@click.option(
    '--debug',
    is_flag=True,
    help='Enable debug mode (DEBUG level, logs to ./starrynight-debug.log)'
)
@click.option(
    '--log-file',
    type=click.Path(path_type=Path),
    default=None,
    help='Custom log file path'
)
@click.option(
    '--log-level',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    default='INFO',
    help='Log level for file logging (default: INFO)'
)
def cli(
    ctx,
    config_path: Optional[Path],
    verbose: int,
    debug: bool,
    log_file: Optional[Path],
    log_level: str
):
    """
    StarryNight - theme system orchestration core.

    Initializes the managed systems phase by phase, routes events through
    the unified event bus and reports on system health.

    \b
    Examples:
      # Push a palette through the color pipeline
      starrynight run --color VIBRANT=#7aa2f7 --color PRIMARY=#1e1e2e

      # Same palette, sent through a legacy event name
      starrynight run --color VIBRANT=#7aa2f7 --legacy colors/extracted

      # Health report as JSON
      starrynight health --json

      # List legacy event mappings
      starrynight events legacy
    """
    setup_logging(verbose, debug, log_file, log_level)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["log_path"] = resolve_log_path(debug, log_file)


cli.add_command(run)
cli.add_command(health)
cli.add_command(events_group)
cli.add_command(settings_group)

if __name__ == "__main__":
    cli()
