"""Tests for the exception hierarchy and error handling helpers."""

import asyncio
from unittest.mock import Mock

import pytest

from starrynight.exceptions import (
    CircularDependencyError,
    ConfigurationError,
    ErrorContext,
    InitializationError,
    PhaseFailedError,
    ServiceUnavailableError,
    StarryNightError,
    SystemTimeoutError,
    collect_errors,
    format_error_for_display,
    handle_errors,
)


class TestExceptions:
    """Test messages carried by the typed errors."""

    @pytest.mark.unit
    def test_configuration_errors_share_a_base(self):
        error = CircularDependencyError(["A", "B", "A"])
        assert isinstance(error, ConfigurationError)
        assert isinstance(error, StarryNightError)

    @pytest.mark.unit
    def test_phase_failure_lists_systems(self):
        error = PhaseFailedError(
            "services", [InitializationError("Music", "boom"), SystemTimeoutError("Css", 0.5)]
        )

        assert "services" in str(error)
        assert "Music, Css" in error.user_message
        assert "not ready after 0.5s" in error.technical_message
        assert error.recovery_hint in error.get_full_message()

    @pytest.mark.unit
    def test_format_for_display(self):
        message, hint = format_error_for_display(ServiceUnavailableError("music_sync"))
        assert "music_sync" in message

        message, hint = format_error_for_display(ValueError("plain"))
        assert message == "ValueError: plain"
        assert hint is None


class TestHandleErrors:
    """Test the handle_errors decorator."""

    @pytest.mark.unit
    def test_fallback_value_and_notification(self):
        notify = Mock()

        @handle_errors(operation_name="load theme", user_notification=notify, fallback_value="default", re_raise=False)
        def load():
            raise RuntimeError("disk gone")

        assert load() == "default"
        notify.assert_called_once_with("Error: disk gone")

    @pytest.mark.unit
    def test_typed_errors_use_full_message(self):
        notify = Mock()
        error = InitializationError("Music", "boom")

        @handle_errors(operation_name="start", user_notification=notify)
        def start():
            raise error

        with pytest.raises(InitializationError):
            start()
        notify.assert_called_once_with(error.get_full_message())

    @pytest.mark.unit
    def test_success_passes_through(self):
        @handle_errors(operation_name="add")
        def add(a, b):
            return a + b

        assert add(2, 3) == 5


class TestErrorContext:
    """Test the ErrorContext context manager."""

    @pytest.mark.unit
    def test_suppresses_and_records(self):
        with ErrorContext("save settings", re_raise=False) as ctx:
            raise OSError("read-only")

        assert isinstance(ctx.error, OSError)

    @pytest.mark.unit
    def test_re_raises_by_default(self):
        with pytest.raises(KeyError):
            with ErrorContext("lookup"):
                raise KeyError("x")

    @pytest.mark.unit
    def test_no_error(self):
        with ErrorContext("noop") as ctx:
            pass
        assert ctx.error is None

    @pytest.mark.unit
    def test_cancellation_is_never_suppressed(self):
        with pytest.raises(asyncio.CancelledError):
            with ErrorContext("wait for palette", re_raise=False) as ctx:
                raise asyncio.CancelledError()

        assert isinstance(ctx.error, asyncio.CancelledError)


class TestErrorCollector:
    """Test batch error collection."""

    @pytest.mark.unit
    def test_collects_and_continues(self):
        collector = collect_errors("destroy systems")
        finished = []

        for name in ["A", "B", "C"]:
            with collector.try_operation(f"destroy {name}"):
                if name == "B":
                    raise InitializationError(name, "stuck")
                finished.append(name)

        assert finished == ["A", "C"]
        assert collector.has_errors
        assert collector.error_count == 1
        assert collector.success_count == 2
        summary = collector.get_summary()
        assert summary.startswith("destroy systems: 1 of 3 operations failed:")
        assert "destroy B: System 'B' failed to initialize: stuck" in summary

    @pytest.mark.unit
    def test_summary_without_errors(self):
        collector = collect_errors("refresh")
        with collector.try_operation("one"):
            pass

        assert collector.get_summary() == "refresh: all 1 operations succeeded"
