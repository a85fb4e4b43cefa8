"""Tests for eventzone configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from eventzone.config import (
    CONFIG_ENV_VAR,
    DEFAULT_CALENDAR_ID,
    DEFAULT_CREDENTIALS_PATH,
    ConfigError,
    EventzoneConfig,
    default_config_path,
    load_config,
    resolve_env_vars,
)

pytestmark = pytest.mark.unit

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

FULL_TOML = """\
[eventzone]
default_timezone = "Europe/Berlin"
default_calendar = "work@example.com"
credentials_file = "/etc/eventzone/credentials.json"

[eventzone.calendars."team@example.com"]
timezone = "America/New_York"

[eventzone.calendars."holidays@example.com"]
timezone = ""

[eventzone.logging]
level = "debug"
format = "JSON"
"""

MINIMAL_TOML = """\
[eventzone]
"""


def _write_toml(tmp_path: Path, content: str, filename: str = "eventzone.toml") -> Path:
    """Write *content* to a TOML file inside *tmp_path* and return its path."""
    path = tmp_path / filename
    path.write_text(content)
    return path


# ---------------------------------------------------------------------------
# Happy-path tests
# ---------------------------------------------------------------------------


def test_load_full_config(tmp_path: Path):
    config = load_config(_write_toml(tmp_path, FULL_TOML))

    assert config.default_timezone == "Europe/Berlin"
    assert config.default_calendar == "work@example.com"
    assert config.credentials_file == Path("/etc/eventzone/credentials.json")
    assert config.calendar_timezones == {"team@example.com": "America/New_York"}
    assert config.logging.level == "DEBUG"
    assert config.logging.format == "json"


def test_load_minimal_config_uses_defaults(tmp_path: Path):
    config = load_config(_write_toml(tmp_path, MINIMAL_TOML))

    assert config.default_timezone == ""
    assert config.default_calendar == DEFAULT_CALENDAR_ID
    assert config.credentials_file == DEFAULT_CREDENTIALS_PATH.expanduser()
    assert config.calendar_timezones == {}
    assert config.logging.level == "WARNING"
    assert config.logging.format == "text"


def test_missing_file_returns_defaults(tmp_path: Path):
    assert load_config(tmp_path / "absent.toml") == EventzoneConfig()


def test_env_var_references_are_resolved(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("EVENTZONE_TEST_ZONE", "Asia/Tokyo")
    path = _write_toml(
        tmp_path,
        '[eventzone]\ndefault_timezone = "${EVENTZONE_TEST_ZONE}"\n',
    )
    assert load_config(path).default_timezone == "Asia/Tokyo"


def test_default_config_path_honours_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    target = tmp_path / "custom.toml"
    monkeypatch.setenv(CONFIG_ENV_VAR, str(target))
    assert default_config_path() == target


def test_load_config_without_path_uses_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    path = _write_toml(tmp_path, '[eventzone]\ndefault_timezone = "UTC"\n')
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    assert load_config().default_timezone == "UTC"


# ---------------------------------------------------------------------------
# Override precedence
# ---------------------------------------------------------------------------


class TestOverrideFor:
    def _config(self) -> EventzoneConfig:
        return EventzoneConfig(
            default_timezone="Europe/Berlin",
            calendar_timezones={"team@example.com": "America/New_York"},
        )

    def test_flag_wins(self):
        assert self._config().override_for("team@example.com", " UTC ") == "UTC"

    def test_calendar_zone_before_default(self):
        assert self._config().override_for("team@example.com") == "America/New_York"

    def test_default_for_other_calendars(self):
        assert self._config().override_for("primary") == "Europe/Berlin"

    def test_blank_flag_is_ignored(self):
        assert self._config().override_for("primary", "   ") == "Europe/Berlin"

    def test_nothing_configured(self):
        assert EventzoneConfig().override_for("primary") == ""


# ---------------------------------------------------------------------------
# Validation errors
# ---------------------------------------------------------------------------


def test_invalid_toml_raises(tmp_path: Path):
    path = _write_toml(tmp_path, "[eventzone\ndefault_timezone = ")
    with pytest.raises(ConfigError, match="Invalid TOML"):
        load_config(path)


def test_invalid_default_timezone_raises(tmp_path: Path):
    path = _write_toml(tmp_path, '[eventzone]\ndefault_timezone = "Mars/Olympus_Mons"\n')
    with pytest.raises(ConfigError, match="default_timezone"):
        load_config(path)


def test_zone_directory_as_default_timezone_raises(tmp_path: Path):
    path = _write_toml(tmp_path, '[eventzone]\ndefault_timezone = "America"\n')
    with pytest.raises(ConfigError, match="default_timezone"):
        load_config(path)


def test_non_string_value_raises(tmp_path: Path):
    path = _write_toml(tmp_path, "[eventzone]\ndefault_calendar = 42\n")
    with pytest.raises(ConfigError, match="default_calendar must be a string"):
        load_config(path)


def test_calendar_entry_must_be_table(tmp_path: Path):
    path = _write_toml(tmp_path, '[eventzone.calendars]\nprimary = "UTC"\n')
    with pytest.raises(ConfigError, match="must be a table"):
        load_config(path)


def test_invalid_log_format_raises(tmp_path: Path):
    path = _write_toml(tmp_path, '[eventzone.logging]\nformat = "xml"\n')
    with pytest.raises(ConfigError, match="logging.format"):
        load_config(path)


def test_unresolved_env_var_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("EVENTZONE_MISSING_VAR", raising=False)
    path = _write_toml(
        tmp_path,
        '[eventzone]\ncredentials_file = "${EVENTZONE_MISSING_VAR}/creds.json"\n',
    )
    with pytest.raises(ConfigError, match="EVENTZONE_MISSING_VAR"):
        load_config(path)


# ---------------------------------------------------------------------------
# resolve_env_vars
# ---------------------------------------------------------------------------


def test_resolve_env_vars_walks_nested_values(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("EVENTZONE_A", "alpha")
    resolved = resolve_env_vars({"x": ["${EVENTZONE_A}", 3], "y": {"z": "pre-${EVENTZONE_A}"}})
    assert resolved == {"x": ["alpha", 3], "y": {"z": "pre-alpha"}}


def test_resolve_env_vars_reports_all_missing(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("EVENTZONE_M1", raising=False)
    monkeypatch.delenv("EVENTZONE_M2", raising=False)
    with pytest.raises(ConfigError, match="EVENTZONE_M1, EVENTZONE_M2"):
        resolve_env_vars("${EVENTZONE_M1}:${EVENTZONE_M2}")
