"""User settings commands.

Commands:
    - settings show [--field FIELD]     # Display settings
    - settings set KEY VALUE            # Update one setting and save
    - settings reset [--yes]            # Reset to defaults and save
"""

from pathlib import Path

import click
from pydantic import ValidationError

from starrynight.exceptions import wrap_pydantic_error
from starrynight.model_manager import ModelManagerService, PydanticPersistence
from starrynight.models import DEFAULT_SETTINGS_PATH, UserSettings

from .common import load_config, report_error


def _open_store(ctx: click.Context) -> ModelManagerService[UserSettings]:
    config = load_config(ctx)
    path = Path(config.settings_path or DEFAULT_SETTINGS_PATH)
    # Corrupted files are reported by ensure_valid_or_create and left untouched
    settings = PydanticPersistence.ensure_valid_or_create(path, UserSettings, auto_save=False)
    return ModelManagerService(UserSettings, settings, default_path=path)


@click.group(name="settings")
def settings_group():
    """Show and change persisted user settings."""
    pass


@settings_group.command(name="show")
@click.option("--field", "-f", default=None, help="Only show this field")
@click.pass_context
def show(ctx, field: str | None):
    """Display current settings."""
    store = _open_store(ctx)
    values = store.get_all()

    if field is not None:
        if field not in values:
            raise click.BadParameter(f"unknown setting '{field}'", param_hint="--field")
        click.echo(f"{field} = {values[field]}")
        return

    click.echo(f"Settings ({store.default_path}):")
    for key, value in values.items():
        click.echo(f"  {key} = {value}")


@settings_group.command(name="set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def set_setting(ctx, key: str, value: str):
    """Set KEY to VALUE and save."""
    store = _open_store(ctx)
    try:
        store.set(key, value)
        store.save()
    except AttributeError:
        raise click.BadParameter(f"unknown setting '{key}'", param_hint="KEY")
    except ValidationError as e:
        report_error(ctx, wrap_pydantic_error(e, str(store.default_path)))
    except Exception as e:
        report_error(ctx, e)

    click.echo(f"{key} = {store.get(key)}")


@settings_group.command(name="reset")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def reset(ctx, yes: bool):
    """Reset all settings to defaults and save."""
    if not yes:
        click.confirm("Reset all settings to defaults?", abort=True)

    store = _open_store(ctx)
    try:
        store.reset()
        store.save()
    except Exception as e:
        report_error(ctx, e)

    click.echo("Settings reset to defaults")
