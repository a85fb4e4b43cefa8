"""Parsing of Google Calendar boundary values.

Each parser returns ``None`` instead of raising when a value cannot be read;
callers degrade the corresponding output field to an empty string.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from zoneinfo import ZoneInfo

from eventzone.models import EventBoundary
from eventzone.zones import ZoneCache, load_zone

_OFFSET_SECONDS_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:Z|[+-]\d{2}:\d{2})$")
_OFFSET_FRACTION_PATTERN = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{1,9}(?:Z|[+-]\d{2}:\d{2})$"
)
_FLOATING_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}$")
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_FLOATING_FORMAT = "%Y-%m-%dT%H:%M:%S"

WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def _hint_zone(zone_hint: str | None, zones: ZoneCache | None) -> ZoneInfo | None:
    if not isinstance(zone_hint, str):
        return None
    return zones.load(zone_hint) if zones is not None else load_zone(zone_hint)


def _from_offset_string(value: str) -> datetime | None:
    normalized = value
    if normalized.endswith("Z"):
        normalized = f"{normalized[:-1]}+00:00"
    try:
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def _parse_offset_seconds(value: str) -> datetime | None:
    if _OFFSET_SECONDS_PATTERN.match(value) is None:
        return None
    return _from_offset_string(value)


def _parse_offset_fraction(value: str) -> datetime | None:
    if _OFFSET_FRACTION_PATTERN.match(value) is None:
        return None
    return _from_offset_string(value)


def parse_event_time(
    value: str,
    zone_hint: str = "",
    *,
    zones: ZoneCache | None = None,
) -> datetime | None:
    """Parse a ``dateTime`` boundary value into an aware datetime.

    Offset-qualified values are tried at second precision, then with
    fractional seconds, and are converted into *zone_hint* when it loads.
    A floating value (no offset) is only accepted when *zone_hint* loads and
    is then read as wall time in that zone.
    """
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if not normalized:
        return None

    zone = _hint_zone(zone_hint, zones)

    for parser in (_parse_offset_seconds, _parse_offset_fraction):
        parsed = parser(normalized)
        if parsed is None:
            continue
        if zone is None:
            return parsed
        try:
            return parsed.astimezone(zone)
        except OverflowError:
            return None

    if zone is not None and _FLOATING_PATTERN.match(normalized):
        try:
            floating = datetime.strptime(normalized, _FLOATING_FORMAT)
        except ValueError:
            return None
        return floating.replace(tzinfo=zone)
    return None


def parse_event_date(
    value: str,
    zone_hint: str = "",
    *,
    zones: ZoneCache | None = None,
) -> datetime | None:
    """Parse a ``date`` boundary value into midnight of that day.

    The result is anchored to *zone_hint* when it loads and naive otherwise;
    the weekday is the same either way.
    """
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if not normalized or _DATE_PATTERN.match(normalized) is None:
        return None
    try:
        parsed = date.fromisoformat(normalized)
    except ValueError:
        return None

    zone = _hint_zone(zone_hint, zones)
    return datetime(parsed.year, parsed.month, parsed.day, tzinfo=zone)


def parse_boundary(
    boundary: EventBoundary,
    zone_hint: str = "",
    *,
    zones: ZoneCache | None = None,
) -> datetime | None:
    """Parse the ``instant`` of *boundary*, falling back to its ``date``."""
    if boundary.instant:
        parsed = parse_event_time(boundary.instant, zone_hint, zones=zones)
        if parsed is not None:
            return parsed
    if boundary.date:
        return parse_event_date(boundary.date, zone_hint, zones=zones)
    return None


def weekday_name(value: datetime | date) -> str:
    """English weekday name, independent of the process locale."""
    return WEEKDAY_NAMES[value.weekday()]
