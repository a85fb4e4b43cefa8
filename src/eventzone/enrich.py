"""Event enrichment: resolved zone, weekdays and local renderings per event.

``enrich_event`` is the single code path behind single-event display, list
display and multi-calendar aggregation.  It never raises; a boundary that
cannot be parsed yields empty display fields and the rest of the batch is
unaffected.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from typing import Any

from opentelemetry import trace

from eventzone.google import CalendarError, sanitize_error_message
from eventzone.localize import localize_boundary
from eventzone.models import (
    CalendarAggregate,
    CalendarFetchFailure,
    EnrichedEventView,
    EnrichedEventWithCalendar,
    EventBoundary,
)
from eventzone.zones import ZoneCache, first_zone_name, resolve_zone

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

FetchPage = Callable[[str], Awaitable[Sequence[Mapping[str, Any]]]]


def _enriched_fields(
    event: Mapping[str, Any],
    override: str,
    zones: ZoneCache,
) -> dict[str, Any]:
    start = EventBoundary.from_payload(event.get("start"))
    end = EventBoundary.from_payload(event.get("end"))

    resolved = resolve_zone(override, [start.zone_hint, end.zone_hint], zones=zones)
    event_zone = first_zone_name([start.zone_hint, end.zone_hint])

    start_view = localize_boundary(start, resolved, zones=zones)
    end_view = localize_boundary(end, resolved, zones=zones)

    return {
        "event": {str(key): value for key, value in event.items()},
        "start_day_of_week": start_view.weekday,
        "end_day_of_week": end_view.weekday,
        "timezone": resolved.name,
        "event_timezone": event_zone if event_zone and event_zone != resolved.name else None,
        "start_local": start_view.local,
        "end_local": end_view.local,
    }


def enrich_event(
    event: Mapping[str, Any],
    override: str = "",
    *,
    zones: ZoneCache | None = None,
) -> EnrichedEventView:
    """Build the display view of *event*.

    *override* is the highest-priority zone (a ``--timezone`` flag or a
    configured default).  The zone resolved once here is used for both the
    start and the end boundary.
    """
    if not isinstance(event, Mapping):
        event = {}
    cache = zones if zones is not None else ZoneCache()
    return EnrichedEventView(**_enriched_fields(event, override, cache))


def enrich_events(
    events: Iterable[Any],
    override: str = "",
    *,
    zones: ZoneCache | None = None,
) -> list[EnrichedEventView]:
    """Enrich one page of events; items that are not event objects are skipped."""
    cache = zones if zones is not None else ZoneCache()
    return [
        enrich_event(event, override, zones=cache) for event in events if isinstance(event, Mapping)
    ]


def enrich_calendar_page(
    calendar_id: str,
    events: Iterable[Any],
    override: str = "",
    *,
    zones: ZoneCache | None = None,
) -> list[EnrichedEventWithCalendar]:
    cache = zones if zones is not None else ZoneCache()
    return [
        EnrichedEventWithCalendar(
            calendar_id=calendar_id,
            **_enriched_fields(event, override, cache),
        )
        for event in events
        if isinstance(event, Mapping)
    ]


async def aggregate_calendars(
    fetch_page: FetchPage,
    calendar_ids: Iterable[str],
    override: str = "",
    *,
    calendar_overrides: Mapping[str, str] | None = None,
) -> CalendarAggregate:
    """Fetch and enrich events from every calendar in *calendar_ids*.

    A calendar whose fetch raises :class:`CalendarError` is reported in
    ``failures`` and contributes no events; the remaining calendars are still
    processed.  *calendar_overrides* supplies a zone for specific calendars;
    every other calendar uses *override*.
    """
    zones = ZoneCache()
    aggregate = CalendarAggregate()
    for calendar_id in calendar_ids:
        with tracer.start_as_current_span("eventzone.calendar.fetch") as span:
            span.set_attribute("calendar.id", calendar_id)
            try:
                events = await fetch_page(calendar_id)
            except CalendarError as exc:
                message = sanitize_error_message(exc)
                span.set_status(trace.StatusCode.ERROR, message)
                logger.warning("calendar %s: %s", calendar_id, message)
                aggregate.failures.append(
                    CalendarFetchFailure(
                        calendar_id=calendar_id,
                        error=message,
                        error_type=type(exc).__name__,
                    )
                )
                continue
            span.set_attribute("calendar.event_count", len(events))

        calendar_override = override
        if calendar_overrides and calendar_overrides.get(calendar_id, "").strip():
            calendar_override = calendar_overrides[calendar_id]
        aggregate.events.extend(
            enrich_calendar_page(calendar_id, events, calendar_override, zones=zones)
        )
    return aggregate
