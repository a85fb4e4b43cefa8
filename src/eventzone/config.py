"""eventzone configuration loading and validation.

Reads ``eventzone.toml`` and returns a validated :class:`EventzoneConfig`.
A missing file is not an error; every setting has a default.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from eventzone.logging import LOG_FORMATS
from eventzone.zones import load_zone

CONFIG_ENV_VAR = "EVENTZONE_CONFIG"
CREDENTIALS_ENV_VAR = "EVENTZONE_GOOGLE_CREDENTIALS"
DEFAULT_CONFIG_PATH = Path("~/.config/eventzone/eventzone.toml")
DEFAULT_CREDENTIALS_PATH = Path("~/.config/eventzone/credentials.json")
DEFAULT_CALENDAR_ID = "primary"

# Pattern matching ${VAR_NAME}; alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(Exception):
    """Raised when the eventzone configuration is malformed or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from the [eventzone.logging] section."""

    level: str = "WARNING"
    format: str = "text"  # "text" or "json"


@dataclass
class EventzoneConfig:
    """Parsed and validated eventzone configuration."""

    default_timezone: str = ""
    default_calendar: str = DEFAULT_CALENDAR_ID
    credentials_file: Path = field(default_factory=lambda: DEFAULT_CREDENTIALS_PATH.expanduser())
    calendar_timezones: dict[str, str] = field(default_factory=dict)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def override_for(self, calendar_id: str, flag_timezone: str | None = None) -> str:
        """Zone override for *calendar_id*: flag, then per-calendar zone, then default."""
        for candidate in (
            flag_timezone,
            self.calendar_timezones.get(calendar_id),
            self.default_timezone,
        ):
            if isinstance(candidate, str) and candidate.strip():
                return candidate.strip()
        return ""


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values (int, bool,
    float, None) are returned unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def default_config_path() -> Path:
    """``$EVENTZONE_CONFIG`` when set, else ``~/.config/eventzone/eventzone.toml``."""
    env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def _optional_string(section: dict[str, Any], key: str, path: str) -> str:
    value = section.get(key, "")
    if not isinstance(value, str):
        raise ConfigError(f"{path}.{key} must be a string")
    return value.strip()


def _parse_calendar_timezones(section: Any) -> dict[str, str]:
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError("[eventzone.calendars] must be a table keyed by calendar id")

    timezones: dict[str, str] = {}
    for calendar_id, calendar_section in section.items():
        if not isinstance(calendar_section, dict):
            raise ConfigError(f"[eventzone.calendars.{calendar_id!r}] must be a table")
        timezone = _optional_string(
            calendar_section, "timezone", f"eventzone.calendars.{calendar_id!r}"
        )
        if timezone:
            timezones[str(calendar_id)] = timezone
    return timezones


def _parse_logging(section: Any) -> LoggingConfig:
    if section is None:
        return LoggingConfig()
    if not isinstance(section, dict):
        raise ConfigError("[eventzone.logging] must be a table")
    log_level = str(section.get("level", "WARNING")).upper()
    log_format = str(section.get("format", "text")).lower()
    if log_format not in LOG_FORMATS:
        raise ConfigError(
            f"Invalid eventzone.logging.format: {log_format!r}. Expected 'text' or 'json'."
        )
    return LoggingConfig(level=log_level, format=log_format)


def load_config(path: Path | None = None) -> EventzoneConfig:
    """Load and validate the eventzone TOML configuration.

    Parameters
    ----------
    path:
        Config file location.  Defaults to :func:`default_config_path`.

    Returns
    -------
    EventzoneConfig
        Parsed configuration; defaults when the file does not exist.

    Raises
    ------
    ConfigError
        If the file contains invalid TOML, an unresolved ``${VAR}`` reference,
        or an invalid value.
    """
    toml_path = path if path is not None else default_config_path()
    if not toml_path.exists():
        return EventzoneConfig()

    try:
        data = tomllib.loads(toml_path.read_bytes().decode())
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    data = resolve_env_vars(data)

    section = data.get("eventzone", {})
    if not isinstance(section, dict):
        raise ConfigError("[eventzone] must be a table")

    default_timezone = _optional_string(section, "default_timezone", "eventzone")
    if default_timezone and load_zone(default_timezone) is None:
        raise ConfigError(
            f"Invalid eventzone.default_timezone: {default_timezone!r} "
            "(use IANA timezone names like America/New_York, UTC, Europe/London)"
        )

    default_calendar = _optional_string(section, "default_calendar", "eventzone")
    credentials_raw = _optional_string(section, "credentials_file", "eventzone")

    return EventzoneConfig(
        default_timezone=default_timezone,
        default_calendar=default_calendar or DEFAULT_CALENDAR_ID,
        credentials_file=(
            Path(credentials_raw).expanduser()
            if credentials_raw
            else DEFAULT_CREDENTIALS_PATH.expanduser()
        ),
        calendar_timezones=_parse_calendar_timezones(section.get("calendars")),
        logging=_parse_logging(section.get("logging")),
    )
