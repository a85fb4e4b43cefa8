"""Records exchanged between the calendar client, the enrichment engine and the renderers."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _payload_text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    return value if isinstance(value, str) else ""


class EventBoundary(BaseModel):
    """One ``start`` or ``end`` object of a Google Calendar event.

    ``instant`` carries ``dateTime``, ``date`` carries the all-day ``date`` and
    ``zone_hint`` carries ``timeZone``.  Exactly one of ``instant``/``date`` is
    normally populated; an empty ``instant`` means ``date`` is consulted.
    """

    model_config = ConfigDict(frozen=True)

    instant: str = ""
    date: str = ""
    zone_hint: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> EventBoundary:
        if not isinstance(payload, Mapping):
            return cls()
        return cls(
            instant=_payload_text(payload, "dateTime"),
            date=_payload_text(payload, "date"),
            zone_hint=_payload_text(payload, "timeZone"),
        )

    @property
    def raw_value(self) -> str:
        """The value shown in table columns: ``dateTime`` if set, else ``date``."""
        return self.instant or self.date


class EnrichedEventView(BaseModel):
    """A calendar event plus weekday, zone and local-time display fields."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    event: dict[str, Any] = Field(default_factory=dict)
    start_day_of_week: str = ""
    end_day_of_week: str = ""
    timezone: str = ""
    event_timezone: str | None = None
    start_local: str = ""
    end_local: str = ""

    @property
    def event_id(self) -> str:
        return _payload_text(self.event, "id")

    @property
    def summary(self) -> str:
        return _payload_text(self.event, "summary")

    def to_payload(self) -> dict[str, Any]:
        """Serialize as the original event fields with the display fields merged in."""
        extra = self.model_dump(by_alias=True, exclude={"event"}, exclude_none=True)
        return {**self.event, **extra}


class EnrichedEventWithCalendar(EnrichedEventView):
    """An enriched event tagged with the calendar it was listed from."""

    calendar_id: str = ""


class CalendarFetchFailure(BaseModel):
    """A calendar whose events could not be fetched during aggregation."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    calendar_id: str
    error: str
    error_type: str


class CalendarAggregate(BaseModel):
    """Enriched events from several calendars plus the calendars that failed."""

    events: list[EnrichedEventWithCalendar] = Field(default_factory=list)
    failures: list[CalendarFetchFailure] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"events": [view.to_payload() for view in self.events]}
        if self.failures:
            payload["failures"] = [failure.model_dump(by_alias=True) for failure in self.failures]
        return payload
