"""Commands that drive a live coordinator."""

import asyncio
import json
import sys

import click

from starrynight.events import UnifiedEvent
from starrynight.models import CoordinatorConfig, CoordinatorHealth
from starrynight.orchestration import SystemCoordinator

from .common import load_config, report_error

DEFAULT_PALETTE = {
    "VIBRANT": "#7aa2f7",
    "PROMINENT": "#bb9af7",
    "DARK_VIBRANT": "#1a1b26",
}


def _parse_colors(values: tuple[str, ...]) -> dict[str, str]:
    palette = {}
    for value in values:
        key, sep, color = value.partition("=")
        if not sep or not key or not color:
            raise click.BadParameter(f"expected KEY=HEX, got '{value}'", param_hint="--color")
        palette[key.strip()] = color.strip()
    return palette


async def _run_pipeline(
    config: CoordinatorConfig, palette: dict[str, str], track: str, legacy: str | None
) -> tuple[dict[str, str], CoordinatorHealth]:
    coordinator = SystemCoordinator(config)
    try:
        await coordinator.initialize()

        payload = {"rawColors": palette, "trackUri": track}
        if legacy:
            if not coordinator.migration.emit_legacy_event(legacy, payload):
                raise click.BadParameter(f"no mapping for legacy event '{legacy}'", param_hint="--legacy")
        else:
            coordinator.event_bus.emit_sync(UnifiedEvent.COLORS_EXTRACTED, payload)

        variables = coordinator.get_shared_css_variable_applier().scope.snapshot()
        report = await coordinator.health_check()
        return variables, report
    finally:
        await coordinator.destroy()


async def _check_health(config: CoordinatorConfig) -> CoordinatorHealth:
    coordinator = SystemCoordinator(config)
    try:
        await coordinator.initialize()
        return await coordinator.health_check()
    finally:
        await coordinator.destroy()


def _echo_health(report: CoordinatorHealth) -> None:
    status = "healthy" if report.healthy else "unhealthy"
    click.echo(f"Overall: {report.overall.value} ({status})")
    for phase in report.phases.values():
        click.echo(f"\n[{phase.phase}]")
        for name in phase.systems:
            system = report.system_status[name]
            marker = "OK" if system.healthy else "FAIL"
            click.echo(f"  [{marker}] {name:<22} {system.state.value:<12} {system.details}")

    if report.issues:
        click.echo("\nIssues:")
        for issue in report.issues:
            click.echo(f"  - {issue}")
    if report.recommendations:
        click.echo("\nRecommendations:")
        for recommendation in report.recommendations:
            click.echo(f"  - {recommendation}")


@click.command()
@click.option(
    "--color",
    "colors",
    multiple=True,
    metavar="KEY=HEX",
    help="Palette entry (repeatable), e.g. --color VIBRANT=#7aa2f7",
)
@click.option("--track", default="spotify:track:demo", show_default=True, help="Track URI for the palette")
@click.option("--legacy", default=None, help="Send the palette through a legacy event name instead")
@click.option("--json", "as_json", is_flag=True, help="Print machine-readable output")
@click.pass_context
def run(ctx, colors: tuple[str, ...], track: str, legacy: str | None, as_json: bool):
    """Initialize all systems and push one palette through the color pipeline."""
    palette = _parse_colors(colors) or dict(DEFAULT_PALETTE)

    try:
        config = load_config(ctx)
        variables, report = asyncio.run(_run_pipeline(config, palette, track, legacy))
    except click.ClickException:
        raise
    except Exception as e:
        report_error(ctx, e)

    if as_json:
        click.echo(json.dumps({
            "variables": variables,
            "health": report.model_dump(mode="json"),
        }, indent=2))
        return

    click.echo("Theme variables:")
    for name, value in sorted(variables.items()):
        click.echo(f"  {name}: {value}")
    click.echo(f"\nHealth: {report.overall.value}")


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Print machine-readable output")
@click.pass_context
def health(ctx, as_json: bool):
    """Initialize all systems and print the health report. Exits 1 when unhealthy."""
    try:
        config = load_config(ctx)
        report = asyncio.run(_check_health(config))
    except Exception as e:
        report_error(ctx, e)

    if as_json:
        click.echo(report.model_dump_json(indent=2))
    else:
        _echo_health(report)

    if not report.healthy:
        sys.exit(1)
