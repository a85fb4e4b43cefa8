"""Output rendering: JSON documents, aligned tables and the single-event detail view."""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from typing import Any

from eventzone.localize import event_end, event_start
from eventzone.models import EnrichedEventView, EnrichedEventWithCalendar

NO_TITLE = "(no title)"
DEFAULT_EVENT_TYPE = "default"
COLUMN_GAP = "  "


def json_document(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def events_list_payload(
    views: Iterable[EnrichedEventView],
    next_page_token: str = "",
) -> dict[str, Any]:
    return {
        "events": [view.to_payload() for view in views],
        "nextPageToken": next_page_token,
    }


def format_table(header: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    """Left-aligned columns separated by two spaces; the last column is not padded."""
    table = [list(header), *[[str(cell) for cell in row] for row in rows]]
    widths = [max(len(row[index]) for row in table) for index in range(len(header))]
    lines = []
    for row in table:
        cells = [cell.ljust(widths[index]) for index, cell in enumerate(row[:-1])]
        cells.append(row[-1])
        lines.append(COLUMN_GAP.join(cells).rstrip())
    return "\n".join(lines)


def events_table(views: Sequence[EnrichedEventView], *, show_weekday: bool = False) -> str:
    if show_weekday:
        header = ["ID", "START", "START_DOW", "END", "END_DOW", "SUMMARY"]
        rows = [
            [
                view.event_id,
                event_start(view.event),
                view.start_day_of_week,
                event_end(view.event),
                view.end_day_of_week,
                view.summary,
            ]
            for view in views
        ]
    else:
        header = ["ID", "START", "END", "SUMMARY"]
        rows = [
            [view.event_id, event_start(view.event), event_end(view.event), view.summary]
            for view in views
        ]
    return format_table(header, rows)


def calendar_events_table(
    views: Sequence[EnrichedEventWithCalendar],
    *,
    show_weekday: bool = False,
) -> str:
    if show_weekday:
        header = ["CALENDAR", "ID", "START", "START_DOW", "END", "END_DOW", "SUMMARY"]
        rows = [
            [
                view.calendar_id,
                view.event_id,
                event_start(view.event),
                view.start_day_of_week,
                event_end(view.event),
                view.end_day_of_week,
                view.summary,
            ]
            for view in views
        ]
    else:
        header = ["CALENDAR", "ID", "START", "END", "SUMMARY"]
        rows = [
            [
                view.calendar_id,
                view.event_id,
                event_start(view.event),
                event_end(view.event),
                view.summary,
            ]
            for view in views
        ]
    return format_table(header, rows)


def _text(payload: Any, key: str) -> str:
    if not isinstance(payload, dict):
        return ""
    value = payload.get(key)
    return value if isinstance(value, str) else ""


def _dicts(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, list):
        return []
    return [entry for entry in payload if isinstance(entry, dict)]


def _attendee_lines(event: dict[str, Any]) -> list[str]:
    lines = []
    for attendee in _dicts(event.get("attendees")):
        email = _text(attendee, "email").strip()
        if not email:
            continue
        status = _text(attendee, "responseStatus")
        if attendee.get("optional") is True:
            status += " (optional)"
        lines.append(f"attendee\t{email}\t{status}")
    return lines


def _reminder_lines(event: dict[str, Any]) -> list[str]:
    reminders = event.get("reminders")
    if not isinstance(reminders, dict):
        return []
    if reminders.get("useDefault") is True:
        return ["reminders\t(calendar default)"]
    overrides = [
        f"{_text(entry, 'method')}:{entry.get('minutes', 0)}m"
        for entry in _dicts(reminders.get("overrides"))
    ]
    return [f"reminders\t{', '.join(overrides)}"] if overrides else []


def _property_lines(event: dict[str, Any]) -> list[str]:
    lines = []
    focus_time = event.get("focusTimeProperties")
    if isinstance(focus_time, dict):
        lines.append(f"auto-decline\t{_text(focus_time, 'autoDeclineMode')}")
        if chat_status := _text(focus_time, "chatStatus"):
            lines.append(f"chat-status\t{chat_status}")
    out_of_office = event.get("outOfOfficeProperties")
    if isinstance(out_of_office, dict):
        lines.append(f"auto-decline\t{_text(out_of_office, 'autoDeclineMode')}")
        if decline_message := _text(out_of_office, "declineMessage"):
            lines.append(f"decline-message\t{decline_message}")
    working_location = event.get("workingLocationProperties")
    if isinstance(working_location, dict):
        lines.append(f"location-type\t{_text(working_location, 'type')}")
    return lines


def format_event_details(view: EnrichedEventView) -> str:
    """Key/value lines (tab separated) describing a single enriched event."""
    event = view.event
    summary = view.summary if view.summary.strip() else NO_TITLE
    lines = [f"id\t{view.event_id}", f"summary\t{summary}"]

    event_type = _text(event, "eventType")
    if event_type and event_type != DEFAULT_EVENT_TYPE:
        lines.append(f"type\t{event_type}")
    if view.timezone:
        lines.append(f"timezone\t{view.timezone}")
    if view.event_timezone:
        lines.append(f"event-timezone\t{view.event_timezone}")

    lines.append(f"start\t{event_start(view.event)}")
    if view.start_day_of_week:
        lines.append(f"start-day-of-week\t{view.start_day_of_week}")
    if view.start_local:
        lines.append(f"start-local\t{view.start_local}")
    lines.append(f"end\t{event_end(view.event)}")
    if view.end_day_of_week:
        lines.append(f"end-day-of-week\t{view.end_day_of_week}")
    if view.end_local:
        lines.append(f"end-local\t{view.end_local}")

    for key, label in (
        ("description", "description"),
        ("location", "location"),
        ("colorId", "color"),
    ):
        if value := _text(event, key):
            lines.append(f"{label}\t{value}")
    visibility = _text(event, "visibility")
    if visibility and visibility != "default":
        lines.append(f"visibility\t{visibility}")
    if _text(event, "transparency") == "transparent":
        lines.append("show-as\tfree")

    lines.extend(_attendee_lines(event))
    if event.get("guestsCanInviteOthers") is False:
        lines.append("guests-can-invite\tfalse")
    if event.get("guestsCanModify") is True:
        lines.append("guests-can-modify\ttrue")
    if event.get("guestsCanSeeOtherGuests") is False:
        lines.append("guests-can-see-others\tfalse")

    if hangout_link := _text(event, "hangoutLink"):
        lines.append(f"meet\t{hangout_link}")
    conference = event.get("conferenceData")
    if isinstance(conference, dict):
        for entry_point in _dicts(conference.get("entryPoints")):
            if _text(entry_point, "entryPointType") == "video":
                lines.append(f"video-link\t{_text(entry_point, 'uri')}")

    recurrence_raw = event.get("recurrence")
    recurrence = (
        [rule for rule in recurrence_raw if isinstance(rule, str)]
        if isinstance(recurrence_raw, list)
        else []
    )
    if recurrence:
        lines.append(f"recurrence\t{'; '.join(recurrence)}")
    lines.extend(_reminder_lines(event))
    for attachment in _dicts(event.get("attachments")):
        lines.append(f"attachment\t{_text(attachment, 'fileUrl')}")
    lines.extend(_property_lines(event))

    source = event.get("source")
    if source_url := _text(source, "url"):
        source_title = _text(source, "title")
        if source_title:
            lines.append(f"source\t{source_url} ({source_title})")
        else:
            lines.append(f"source\t{source_url}")
    if html_link := _text(event, "htmlLink"):
        lines.append(f"link\t{html_link}")
    return "\n".join(lines)
