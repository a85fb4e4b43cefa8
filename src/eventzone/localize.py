"""Weekday and local-time rendering for a single event boundary."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any, NamedTuple

from eventzone.models import EventBoundary
from eventzone.timeparse import parse_boundary, parse_event_time, weekday_name
from eventzone.zones import ResolvedZone, ZoneCache


class LocalizedBoundary(NamedTuple):
    weekday: str
    local: str


def format_rfc3339(value: datetime) -> str:
    """Second-precision RFC 3339, with ``Z`` for a zero offset."""
    rendered = value.replace(microsecond=0).isoformat()
    if value.utcoffset() == timedelta(0):
        return rendered.replace("+00:00", "Z")
    return rendered


def boundary_weekday(
    boundary: EventBoundary,
    resolved: ResolvedZone,
    *,
    zones: ZoneCache | None = None,
) -> str:
    """Weekday of *boundary* in the resolved zone, else in its own zone, else ``""``."""
    for hint in (resolved.name, boundary.zone_hint):
        parsed = parse_boundary(boundary, hint, zones=zones)
        if parsed is not None:
            return weekday_name(parsed)
    return ""


def boundary_local(
    boundary: EventBoundary,
    resolved: ResolvedZone,
    *,
    zones: ZoneCache | None = None,
) -> str:
    """Render *boundary* for display in the resolved zone.

    All-day dates are returned as-is; they are never turned into instants.
    """
    if boundary.instant:
        parsed = parse_event_time(boundary.instant, resolved.name, zones=zones)
        if parsed is not None:
            try:
                if resolved.zone is not None:
                    parsed = parsed.astimezone(resolved.zone)
                return format_rfc3339(parsed)
            except OverflowError:
                pass
    if boundary.date:
        return boundary.date.strip()
    return ""


def localize_boundary(
    boundary: EventBoundary,
    resolved: ResolvedZone,
    *,
    zones: ZoneCache | None = None,
) -> LocalizedBoundary:
    return LocalizedBoundary(
        weekday=boundary_weekday(boundary, resolved, zones=zones),
        local=boundary_local(boundary, resolved, zones=zones),
    )


def _raw_boundary(event: Any, key: str) -> str:
    if not isinstance(event, Mapping):
        return ""
    return EventBoundary.from_payload(event.get(key)).raw_value


def event_start(event: Mapping[str, Any]) -> str:
    """Raw ``start`` value for table columns: ``dateTime`` if set, else ``date``."""
    return _raw_boundary(event, "start")


def event_end(event: Mapping[str, Any]) -> str:
    return _raw_boundary(event, "end")
