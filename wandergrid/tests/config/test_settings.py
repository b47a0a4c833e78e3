"""Tests for application settings."""

import pytest

from wandergrid.config.settings import get_settings, reset_settings


@pytest.fixture
def fresh_settings(monkeypatch):
    """Clear cached settings before and after each test."""
    reset_settings()
    yield monkeypatch
    reset_settings()


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, fresh_settings):
        """Test engine constants default to the leave request editor's values."""
        for name in (
            "LEAVE_NO_IMPACT_KEY",
            "LEAVE_MAX_CARRY_OVER_DEPTH",
            "LEAVE_DEFAULT_WORKING_DAYS",
        ):
            fresh_settings.delenv(name, raising=False)

        leave = get_settings().leave

        assert leave.no_impact_key == "NO_IMPACT_EVENT"
        assert leave.max_carry_over_depth == 5
        assert leave.allocation_tolerance == 0.1
        assert leave.default_working_days == [1, 2, 3, 4, 5]

    def test_environment_overrides(self, fresh_settings):
        """Test environment variables override the engine settings."""
        fresh_settings.setenv("LEAVE_NO_IMPACT_KEY", "FREE")
        fresh_settings.setenv("LEAVE_MAX_CARRY_OVER_DEPTH", "2")
        fresh_settings.setenv("LEAVE_DEFAULT_WORKING_DAYS", "0, 1,2,3,4,9,x")
        fresh_settings.setenv("LOG_LEVEL", "debug")

        settings = get_settings()

        assert settings.log_level == "DEBUG"
        assert settings.leave.no_impact_key == "FREE"
        assert settings.leave.max_carry_over_depth == 2
        assert settings.leave.default_working_days == [0, 1, 2, 3, 4]

    def test_settings_are_cached_until_reset(self, fresh_settings):
        """Test settings are read once until reset."""
        fresh_settings.setenv("APP_NAME", "First")
        first = get_settings()
        fresh_settings.setenv("APP_NAME", "Second")

        assert get_settings() is first
        reset_settings()
        assert get_settings().app_name == "Second"
