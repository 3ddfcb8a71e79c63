"""Unit tests for SharedServiceRegistry."""

import pytest

from starrynight.exceptions import ServiceAlreadyRegisteredError, ServiceUnavailableError
from starrynight.orchestration import SharedService, SharedServiceRegistry


class TestSharedServiceRegistry:
    """Test write-once registration and invalidation."""

    @pytest.fixture
    def registry(self):
        return SharedServiceRegistry()

    @pytest.mark.unit
    def test_get_returns_same_instance(self, registry):
        service = object()
        registry.register(SharedService.MUSIC_SYNC, service)

        assert registry.get(SharedService.MUSIC_SYNC) is service
        assert registry.get(SharedService.MUSIC_SYNC) is registry.get("music_sync")

    @pytest.mark.unit
    def test_second_registration_rejected(self, registry):
        registry.register(SharedService.SETTINGS, object())

        with pytest.raises(ServiceAlreadyRegisteredError):
            registry.register("settings", object())

    @pytest.mark.unit
    def test_missing_service(self, registry):
        with pytest.raises(ServiceUnavailableError) as exc_info:
            registry.get(SharedService.COLOR_HARMONY)

        assert exc_info.value.key == "color_harmony"
        assert registry.get_optional(SharedService.COLOR_HARMONY) is None
        assert registry.get_optional("custom", "fallback") == "fallback"

    @pytest.mark.unit
    def test_membership(self, registry):
        registry.register("custom", 1)

        assert "custom" in registry
        assert SharedService.SETTINGS not in registry
        assert 42 not in registry
        assert registry.has("custom")
        assert registry.keys() == ["custom"]
        assert len(registry) == 1

    @pytest.mark.unit
    def test_invalidate_all(self, registry):
        registry.register(SharedService.MUSIC_SYNC, object())
        registry.register(SharedService.SETTINGS, object())
        generation = registry.generation

        assert registry.invalidate_all() == 2
        assert registry.invalidate_all() == 0
        assert registry.generation == generation + 2
        with pytest.raises(ServiceUnavailableError):
            registry.get(SharedService.MUSIC_SYNC)

    @pytest.mark.unit
    def test_register_again_after_invalidate(self, registry):
        first, second = object(), object()
        registry.register(SharedService.MUSIC_SYNC, first)
        registry.invalidate_all()
        registry.register(SharedService.MUSIC_SYNC, second)

        assert registry.get(SharedService.MUSIC_SYNC) is second
