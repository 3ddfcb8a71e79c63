"""Tests for PydanticPersistence: backups, atomic writes, corrupted files."""

import json

import pytest

from starrynight.exceptions import ConfigFileInvalidError, ConfigValidationError
from starrynight.model_manager import PydanticPersistence
from starrynight.models import UserSettings


class TestSave:
    """Test writing files."""

    @pytest.mark.unit
    def test_overwrite_keeps_backup(self, temp_dir):
        path = temp_dir / "settings.json"
        PydanticPersistence.save_json(UserSettings(visual_guide_mode="minimal"), path, backup=False)

        PydanticPersistence.save_json(UserSettings(visual_guide_mode="cosmic"), path)

        backup = PydanticPersistence.load_json(path.with_suffix(".json.bak"), UserSettings)
        assert backup.visual_guide_mode == "minimal"
        assert PydanticPersistence.load_json(path, UserSettings).visual_guide_mode == "cosmic"

    @pytest.mark.unit
    def test_backup_can_be_disabled(self, temp_dir):
        path = temp_dir / "settings.json"
        PydanticPersistence.save_json(UserSettings(), path)
        PydanticPersistence.save_json(UserSettings(), path, backup=False)

        assert not path.with_suffix(".json.bak").exists()

    @pytest.mark.unit
    def test_temp_file_removed(self, temp_dir):
        path = temp_dir / "settings.json"

        PydanticPersistence.save_json(UserSettings(), path)

        assert not path.with_suffix(".json.tmp").exists()
        assert json.loads(path.read_text(encoding="utf-8"))["harmonic_mode"] == "analogous-flow"


class TestLoad:
    """Test reading and error mapping."""

    @pytest.mark.unit
    def test_missing_file(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            PydanticPersistence.load_json(temp_dir / "nope.json", UserSettings)

    @pytest.mark.unit
    def test_empty_file(self, temp_dir):
        path = temp_dir / "settings.json"
        path.write_text("   ", encoding="utf-8")

        with pytest.raises(ConfigFileInvalidError) as exc_info:
            PydanticPersistence.load_json(path, UserSettings)

        assert exc_info.value.user_message == "Configuration file is empty"

    @pytest.mark.unit
    def test_invalid_value_names_the_field(self, temp_dir):
        path = temp_dir / "settings.json"
        path.write_text(json.dumps({"visual_guide_mode": "psychedelic"}), encoding="utf-8")

        with pytest.raises(ConfigValidationError) as exc_info:
            PydanticPersistence.load_json(path, UserSettings)

        assert exc_info.value.field == "visual_guide_mode"
        assert "settings show" in exc_info.value.recovery_hint

    @pytest.mark.unit
    def test_load_or_default_never_writes(self, temp_dir):
        path = temp_dir / "settings.json"

        settings = PydanticPersistence.load_json_or_default(path, UserSettings)

        assert settings == UserSettings()
        assert not path.exists()


class TestEnsureValidOrCreate:
    """Test default creation and corrupted-file protection."""

    @pytest.mark.unit
    def test_missing_file_is_created(self, temp_dir):
        path = temp_dir / "sub" / "settings.json"

        settings = PydanticPersistence.ensure_valid_or_create(path, UserSettings)

        assert settings == UserSettings()
        assert path.exists()
        assert not path.with_suffix(".json.bak").exists()

    @pytest.mark.unit
    def test_missing_file_without_auto_save(self, temp_dir):
        path = temp_dir / "settings.json"

        PydanticPersistence.ensure_valid_or_create(path, UserSettings, auto_save=False)

        assert not path.exists()

    @pytest.mark.unit
    @pytest.mark.parametrize("content", ["{ invalid json }", '{"visual_effects_level": 7}'])
    def test_corrupted_file_left_untouched(self, temp_dir, content):
        path = temp_dir / "settings.json"
        path.write_text(content, encoding="utf-8")

        settings = PydanticPersistence.ensure_valid_or_create(path, UserSettings)

        assert settings == UserSettings()
        assert path.read_text(encoding="utf-8") == content

    @pytest.mark.unit
    def test_default_factory(self, temp_dir):
        path = temp_dir / "settings.json"

        settings = PydanticPersistence.ensure_valid_or_create(
            path, UserSettings, default_factory=lambda: UserSettings(visual_guide_mode="cinematic")
        )

        assert settings.visual_guide_mode == "cinematic"
        assert PydanticPersistence.load_json(path, UserSettings).visual_guide_mode == "cinematic"
