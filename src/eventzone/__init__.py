"""eventzone — time-zone resolution and localization for Google Calendar events."""

from eventzone.enrich import aggregate_calendars, enrich_calendar_page, enrich_event, enrich_events
from eventzone.models import (
    CalendarAggregate,
    CalendarFetchFailure,
    EnrichedEventView,
    EnrichedEventWithCalendar,
    EventBoundary,
)
from eventzone.zones import ResolvedZone, ZoneCache, resolve_zone

__version__ = "0.1.0"
__all__ = [
    "CalendarAggregate",
    "CalendarFetchFailure",
    "EnrichedEventView",
    "EnrichedEventWithCalendar",
    "EventBoundary",
    "ResolvedZone",
    "ZoneCache",
    "aggregate_calendars",
    "enrich_calendar_page",
    "enrich_event",
    "enrich_events",
    "resolve_zone",
]
