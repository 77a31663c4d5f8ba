"""Unit tests for configuration, logging setup, clock and exceptions."""

import datetime
import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from bandcalendar.core import clock
from bandcalendar.core.config_manager import (
    ConfigManager,
    EngineSettings,
    get_settings,
    parse_env_file,
)
from bandcalendar.core.exceptions import (
    EventNotFoundError,
    EventValidationError,
    MissingOrganizationError,
    SchedulingError,
    StoreError,
    require_organization,
)
from bandcalendar.core.logging_config import (
    OperationIdFilter,
    configure_logging,
    get_logging_status,
    get_operation_id,
    operation_context,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]

_ENV_KEYS = [
    "BANDCAL_CACHE_TTL_SECONDS",
    "BANDCAL_DEFAULT_HORIZON_DAYS",
    "BANDCAL_MAX_WEEK_ITERATIONS",
    "BANDCAL_DATABASE_PATH",
    "BANDCAL_DEBUG",
    "BANDCAL_LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        # setenv first so the original value (or absence) is restored afterwards
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return monkeypatch


class TestParseEnvFile:
    def test_parse_env_file_when_missing_then_empty(self, tmp_path):
        assert parse_env_file(tmp_path / "nope.env") == {}

    def test_parse_env_file_when_comments_and_quotes_then_clean_pairs(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# cache\nBANDCAL_CACHE_TTL_SECONDS = '60'\n\nnot a pair\nBANDCAL_DEBUG=\"true\"\n",
            encoding="utf-8",
        )

        assert parse_env_file(env_file) == {
            "BANDCAL_CACHE_TTL_SECONDS": "60",
            "BANDCAL_DEBUG": "true",
        }


class TestConfigManager:
    def test_load_settings_when_no_env_then_defaults(self, clean_env, tmp_path):
        settings = ConfigManager(tmp_path / ".env").load_settings()

        assert settings.cache_ttl_seconds == 300.0
        assert settings.default_horizon_days == 365
        assert settings.max_week_iterations == 52
        assert settings.debug is False

    def test_load_settings_when_env_file_then_values_applied(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "BANDCAL_MAX_WEEK_ITERATIONS=10\nBANDCAL_DATABASE_PATH=/tmp/cal.db\n", encoding="utf-8"
        )

        settings = ConfigManager(env_file).load_settings()

        assert settings.max_week_iterations == 10
        assert settings.database_path == Path("/tmp/cal.db")

    def test_load_settings_when_env_and_file_disagree_then_env_wins(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("BANDCAL_CACHE_TTL_SECONDS=60\n", encoding="utf-8")
        clean_env.setenv("BANDCAL_CACHE_TTL_SECONDS", "120")

        manager = ConfigManager(env_file)

        assert manager.load_env_file() == []
        assert manager.load_settings().cache_ttl_seconds == 120.0

    def test_load_settings_when_invalid_number_then_default_and_warning(
        self, clean_env, tmp_path, caplog
    ):
        clean_env.setenv("BANDCAL_DEFAULT_HORIZON_DAYS", "a year")

        with caplog.at_level(logging.WARNING):
            settings = ConfigManager(tmp_path / ".env").load_settings()

        assert settings.default_horizon_days == 365
        assert "BANDCAL_DEFAULT_HORIZON_DAYS" in caplog.text

    def test_load_settings_when_override_then_wins_over_env(self, clean_env, tmp_path):
        clean_env.setenv("BANDCAL_DEBUG", "yes")

        settings = ConfigManager(tmp_path / ".env").load_settings(debug=False)

        assert settings.debug is False

    def test_get_settings_when_called_then_engine_settings(self, clean_env, tmp_path):
        clean_env.chdir(tmp_path)

        assert isinstance(get_settings(), EngineSettings)

    def test_engine_settings_when_non_positive_ttl_then_validation_error(self):
        with pytest.raises(ValidationError):
            EngineSettings(cache_ttl_seconds=0)


class TestLogging:
    def test_operation_context_when_nested_then_outer_id_kept(self):
        assert get_operation_id() == "no-operation-id"

        with operation_context("outer") as outer_id:
            with operation_context("inner") as inner_id:
                assert inner_id == outer_id
            assert get_operation_id() == outer_id

        assert outer_id.startswith("outer-")
        assert get_operation_id() == "no-operation-id"

    def test_operation_context_when_explicit_id_then_used(self):
        with operation_context("save", operation_id="op-42") as operation_id:
            assert operation_id == "op-42"

    def test_operation_id_filter_when_record_then_field_added(self):
        record = logging.LogRecord("bandcalendar", logging.INFO, __file__, 1, "msg", (), None)

        with operation_context("x", operation_id="op-7"):
            assert OperationIdFilter().filter(record)

        assert record.operation_id == "op-7"

    def test_configure_logging_when_debug_forced_then_engine_debug(self, clean_env):
        configure_logging(force_debug=True)

        status = get_logging_status()
        assert status["bandcalendar"] == "DEBUG"
        assert status["aiosqlite"] == "WARNING"

    def test_configure_logging_when_env_debug_then_debug(self, clean_env):
        clean_env.setenv("BANDCAL_DEBUG", "1")

        configure_logging()

        assert get_logging_status()["bandcalendar"] == "DEBUG"

    def test_configure_logging_when_production_then_info(self, clean_env):
        configure_logging(debug_mode=False)

        assert get_logging_status()["bandcalendar"] == "INFO"


class TestClock:
    def test_today_when_override_set_then_used(self, monkeypatch):
        monkeypatch.setenv("BANDCAL_TEST_DATE", "2026-03-15T10:00:00")

        assert clock.today() == datetime.date(2026, 3, 15)

    def test_today_when_override_invalid_then_real_date(self, monkeypatch):
        monkeypatch.setenv("BANDCAL_TEST_DATE", "tomorrow")

        assert clock.today() == datetime.date.today()

    def test_month_bounds_when_december_then_year_rolls(self):
        assert clock.month_bounds(datetime.date(2026, 12, 9)) == (
            datetime.date(2026, 12, 1),
            datetime.date(2026, 12, 31),
        )

    def test_month_bounds_when_february_then_last_day(self):
        assert clock.month_bounds(datetime.date(2028, 2, 10))[1] == datetime.date(2028, 2, 29)


class TestExceptions:
    def test_hierarchy_when_engine_errors_then_share_base(self):
        for error in (
            MissingOrganizationError(),
            EventValidationError(["x"]),
            EventNotFoundError("e1"),
            StoreError("boom"),
        ):
            assert isinstance(error, SchedulingError)

    def test_validation_error_when_messages_then_joined(self):
        error = EventValidationError(["Gig name is required", "City is required"])

        assert error.messages == ["Gig name is required", "City is required"]
        assert str(error) == "Gig name is required; City is required"

    def test_not_found_when_org_given_then_in_message(self):
        assert "band-1" in str(EventNotFoundError("e1", "band-1"))

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_require_organization_when_blank_then_error(self, value):
        with pytest.raises(MissingOrganizationError, match="No organization selected"):
            require_organization(value)

    def test_require_organization_when_present_then_returned(self):
        assert require_organization("band-1") == "band-1"
