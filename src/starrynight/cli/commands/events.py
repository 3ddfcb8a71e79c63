"""Event type and legacy mapping commands."""

import click

from starrynight.events import EventMigrationManager, UnifiedEvent, UnifiedEventBus, default_mappings, payload_model


@click.group(name="events")
def events_group():
    """Unified event types and legacy event migration."""
    pass


@events_group.command(name="list")
def list_events():
    """List unified event types and their payload fields."""
    for event in UnifiedEvent:
        fields = ", ".join(payload_model(event).model_fields)
        click.echo(f"{event.value:<36} {fields}")


@events_group.command(name="legacy")
@click.option("--deprecated", "only_deprecated", is_flag=True, help="Only show deprecated mappings")
def list_legacy(only_deprecated: bool):
    """List legacy event names and the unified events they map to."""
    for mapping in default_mappings():
        if only_deprecated and not mapping.deprecated:
            continue
        targets = ", ".join(event.value for event in mapping.unified_events)
        line = f"{mapping.legacy_event:<34} -> {targets}"
        if mapping.deprecated:
            line += f"  [deprecated, removal {mapping.removal_version or 'TBD'}]"
        click.echo(line)


@events_group.command(name="guide")
@click.argument("system")
@click.argument("legacy_events", nargs=-1, required=True)
def guide(system: str, legacy_events: tuple[str, ...]):
    """Print a migration guide for SYSTEM using LEGACY_EVENTS."""
    bus = UnifiedEventBus()
    migration = EventMigrationManager(bus)
    try:
        click.echo(migration.generate_migration_guide(system, legacy_events), nl=False)
    finally:
        migration.destroy()
        bus.destroy()
