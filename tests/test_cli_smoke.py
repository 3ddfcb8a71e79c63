"""Smoke tests for CLI commands.

Runs every command through Click's CliRunner against a temporary config
file, so nothing is read from or written to the user's home directory.
"""

import json

import pytest
from click.testing import CliRunner

from starrynight.cli.main import cli
from starrynight.models import CoordinatorConfig


@pytest.fixture
def runner():
    """Create a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def settings_path(temp_dir):
    return temp_dir / "settings.json"


@pytest.fixture
def base_args(temp_dir, settings_path):
    """Global options pointing config, settings and logs into temp_dir."""
    config_path = temp_dir / "config.json"
    CoordinatorConfig(settings_path=settings_path).save(config_path)
    return ["--log-file", str(temp_dir / "cli.log"), "--config", str(config_path)]


@pytest.mark.integration
class TestCLIHelp:
    """Test that all commands have working help text."""

    def test_main_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "StarryNight - theme system orchestration core" in result.output

    def test_version_flag(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    @pytest.mark.parametrize("command", [
        ["run"],
        ["health"],
        ["events"],
        ["events", "guide"],
        ["settings"],
        ["settings", "set"],
    ])
    def test_command_help(self, runner, command):
        result = runner.invoke(cli, [*command, "--help"])
        assert result.exit_code == 0


@pytest.mark.integration
class TestEventsCommands:
    """Test the events command group."""

    def test_list(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "events", "list"])

        assert result.exit_code == 0
        line = next(l for l in result.output.splitlines() if l.startswith("colors:extracted"))
        assert "raw_colors" in line
        assert "track_uri" in line

    def test_legacy(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "events", "legacy"])

        assert result.exit_code == 0
        assert any(
            l.startswith("music-sync:beat") and "music:beat, music:energy" in l
            for l in result.output.splitlines()
        )

    def test_legacy_deprecated_only(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "events", "legacy", "--deprecated"])

        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert lines
        assert all("[deprecated" in l for l in lines)

    def test_guide(self, runner, base_args):
        result = runner.invoke(
            cli, [*base_args, "events", "guide", "GradientConductor", "music-sync:beat", "nonsense"]
        )

        assert result.exit_code == 0
        assert "# Event Migration Guide for GradientConductor" in result.output
        assert "NO MAPPING FOUND" in result.output

    def test_guide_requires_events(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "events", "guide", "GradientConductor"])
        assert result.exit_code == 2


@pytest.mark.integration
class TestRunCommand:
    """Test pushing a palette through a live coordinator."""

    def test_default_palette_as_json(self, runner, base_args, settings_path):
        result = runner.invoke(cli, [*base_args, "run", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["variables"]["--sn-accent-hex"] == "#7aa2f7"
        assert data["variables"]["--sn-dark-vibrant"] == "#1a1b26"
        assert data["health"]["overall"] == "excellent"
        assert settings_path.exists()

    def test_custom_colors(self, runner, base_args):
        result = runner.invoke(
            cli, [*base_args, "run", "--color", "VIBRANT=#ff0000", "--color", "MUTED=0f0"]
        )

        assert result.exit_code == 0, result.output
        assert "--sn-vibrant: #ff0000" in result.output
        assert "--sn-muted: #00ff00" in result.output
        assert "Health: excellent" in result.output

    def test_bad_color_option(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "run", "--color", "VIBRANT"])

        assert result.exit_code == 2
        assert "KEY=HEX" in result.output

    def test_legacy_event_name(self, runner, base_args):
        result = runner.invoke(
            cli, [*base_args, "run", "--legacy", "colors/extracted", "--color", "PRIMARY=#123456"]
        )

        assert result.exit_code == 0, result.output
        assert "--sn-accent-hex: #123456" in result.output

    def test_unmapped_legacy_event(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "run", "--legacy", "not-a-real-event"])

        assert result.exit_code == 2
        assert "no mapping" in result.output

    def test_invalid_config_file(self, runner, temp_dir):
        config_path = temp_dir / "config.json"
        config_path.write_text("{ broken", encoding="utf-8")

        result = runner.invoke(
            cli, ["--log-file", str(temp_dir / "cli.log"), "--config", str(config_path), "run"]
        )

        assert result.exit_code == 1
        assert "ERROR: Configuration file has invalid syntax" in result.output


@pytest.mark.integration
class TestHealthCommand:
    """Test the health report command."""

    def test_text_report(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "health"])

        assert result.exit_code == 0, result.output
        assert "Overall: excellent (healthy)" in result.output
        assert "[core]" in result.output
        assert "[OK] MusicSyncService" in result.output

    def test_json_report(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "health", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["healthy"] is True
        assert set(data["phases"]) == {"core", "services", "visual-systems", "integration"}


@pytest.mark.integration
class TestSettingsCommands:
    """Test settings show/set/reset."""

    def test_show(self, runner, base_args, settings_path):
        result = runner.invoke(cli, [*base_args, "settings", "show"])

        assert result.exit_code == 0
        assert f"Settings ({settings_path}):" in result.output
        assert "visual_guide_mode = balanced" in result.output
        assert not settings_path.exists()

    def test_show_single_field(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "settings", "show", "-f", "harmonic_mode"])

        assert result.exit_code == 0
        assert result.output.strip() == "harmonic_mode = analogous-flow"

    def test_show_unknown_field(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "settings", "show", "--field", "colour"])
        assert result.exit_code == 2

    def test_set_and_show(self, runner, base_args, settings_path):
        result = runner.invoke(cli, [*base_args, "settings", "set", "visual_guide_mode", "cosmic"])

        assert result.exit_code == 0, result.output
        assert "visual_guide_mode = cosmic" in result.output
        assert json.loads(settings_path.read_text(encoding="utf-8"))["visual_guide_mode"] == "cosmic"

        result = runner.invoke(cli, [*base_args, "settings", "show", "-f", "visual_guide_mode"])
        assert result.output.strip() == "visual_guide_mode = cosmic"

    def test_set_invalid_value(self, runner, base_args, settings_path):
        result = runner.invoke(cli, [*base_args, "settings", "set", "visual_guide_mode", "psychedelic"])

        assert result.exit_code == 1
        assert "ERROR: Invalid configuration value for 'visual_guide_mode'" in result.output
        assert not settings_path.exists()

    def test_set_unknown_key(self, runner, base_args):
        result = runner.invoke(cli, [*base_args, "settings", "set", "colour", "red"])
        assert result.exit_code == 2

    def test_reset(self, runner, base_args, settings_path):
        runner.invoke(cli, [*base_args, "settings", "set", "harmonic_mode", "monochromatic"])

        result = runner.invoke(cli, [*base_args, "settings", "reset", "--yes"])

        assert result.exit_code == 0
        assert "Settings reset to defaults" in result.output
        assert json.loads(settings_path.read_text(encoding="utf-8"))["harmonic_mode"] == "analogous-flow"

    def test_reset_can_be_declined(self, runner, base_args, settings_path):
        runner.invoke(cli, [*base_args, "settings", "set", "harmonic_mode", "monochromatic"])

        result = runner.invoke(cli, [*base_args, "settings", "reset"], input="n\n")

        assert result.exit_code == 1
        assert json.loads(settings_path.read_text(encoding="utf-8"))["harmonic_mode"] == "monochromatic"
