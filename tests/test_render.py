"""Unit tests for JSON payloads, event tables and the single-event detail view."""

from __future__ import annotations

import json

import pytest

from eventzone.enrich import enrich_calendar_page, enrich_event, enrich_events
from eventzone.render import (
    calendar_events_table,
    events_list_payload,
    events_table,
    format_event_details,
    format_table,
    json_document,
)

pytestmark = pytest.mark.unit

STANDUP = {
    "id": "ev1",
    "summary": "Standup",
    "start": {"dateTime": "2025-01-01T10:00:00Z"},
    "end": {"dateTime": "2025-01-01T10:15:00Z"},
}
OFFSITE = {
    "id": "ev22",
    "summary": "Offsite",
    "start": {"date": "2025-01-02"},
    "end": {"date": "2025-01-03"},
}


class TestJson:
    def test_document_keeps_non_ascii(self):
        text = json_document({"summary": "Café"})
        assert "Café" in text
        assert text.startswith("{\n  ")

    def test_events_list_payload(self):
        views = enrich_events([STANDUP], "UTC")
        payload = events_list_payload(views, "next-1")
        assert payload["nextPageToken"] == "next-1"
        assert payload["events"][0]["id"] == "ev1"
        assert payload["events"][0]["startDayOfWeek"] == "Wednesday"
        assert payload["events"][0]["timezone"] == "UTC"
        json.loads(json_document(payload))

    def test_empty_list_payload(self):
        assert events_list_payload([]) == {"events": [], "nextPageToken": ""}


class TestTables:
    def test_format_table_aligns_columns(self):
        table = format_table(["ID", "NAME"], [["a", "first"], ["long-id", "second"]])
        assert table.splitlines() == [
            "ID       NAME",
            "a        first",
            "long-id  second",
        ]

    def test_events_table_without_weekday(self):
        table = events_table(enrich_events([STANDUP, OFFSITE]))
        lines = table.splitlines()
        assert lines[0].split() == ["ID", "START", "END", "SUMMARY"]
        assert lines[1].split() == [
            "ev1",
            "2025-01-01T10:00:00Z",
            "2025-01-01T10:15:00Z",
            "Standup",
        ]
        assert lines[2].split() == ["ev22", "2025-01-02", "2025-01-03", "Offsite"]

    def test_events_table_with_weekday(self):
        lines = events_table(enrich_events([OFFSITE]), show_weekday=True).splitlines()
        assert lines[0].split() == ["ID", "START", "START_DOW", "END", "END_DOW", "SUMMARY"]
        assert lines[1].split() == [
            "ev22",
            "2025-01-02",
            "Thursday",
            "2025-01-03",
            "Friday",
            "Offsite",
        ]

    def test_calendar_table_prepends_calendar(self):
        views = enrich_calendar_page("team", [STANDUP])
        lines = calendar_events_table(views, show_weekday=True).splitlines()
        assert lines[0].split()[0] == "CALENDAR"
        assert lines[1].split()[:2] == ["team", "ev1"]
        assert "Wednesday" in lines[1]


class TestEventDetails:
    def test_minimal_event(self):
        view = enrich_event({"id": "ev1", "start": {"date": "2025-01-02"}, "end": {}})
        assert format_event_details(view).splitlines() == [
            "id\tev1",
            "summary\t(no title)",
            "start\t2025-01-02",
            "start-day-of-week\tThursday",
            "start-local\t2025-01-02",
            "end\t",
        ]

    def test_zone_lines(self):
        event = {
            "id": "ev1",
            "summary": "Call",
            "start": {"dateTime": "2025-01-01T10:00:00-05:00", "timeZone": "America/New_York"},
            "end": {"dateTime": "2025-01-01T11:00:00-05:00", "timeZone": "America/New_York"},
        }
        lines = format_event_details(enrich_event(event, "UTC")).splitlines()
        assert lines[2:10] == [
            "timezone\tUTC",
            "event-timezone\tAmerica/New_York",
            "start\t2025-01-01T10:00:00-05:00",
            "start-day-of-week\tWednesday",
            "start-local\t2025-01-01T15:00:00Z",
            "end\t2025-01-01T11:00:00-05:00",
            "end-day-of-week\tWednesday",
            "end-local\t2025-01-01T16:00:00Z",
        ]

    def test_full_event(self):
        event = {
            **STANDUP,
            "eventType": "focusTime",
            "description": "Daily sync",
            "location": "Room 1",
            "colorId": "5",
            "visibility": "private",
            "transparency": "transparent",
            "attendees": [
                {"email": "a@example.com", "responseStatus": "accepted"},
                {"email": "b@example.com", "responseStatus": "needsAction", "optional": True},
                {"displayName": "No email"},
            ],
            "guestsCanInviteOthers": False,
            "guestsCanModify": True,
            "guestsCanSeeOtherGuests": False,
            "hangoutLink": "https://meet.google.com/abc",
            "conferenceData": {
                "entryPoints": [
                    {"entryPointType": "video", "uri": "https://meet.google.com/abc"},
                    {"entryPointType": "phone", "uri": "tel:+1"},
                ]
            },
            "recurrence": ["RRULE:FREQ=DAILY", "EXDATE:20250105T100000Z"],
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "popup", "minutes": 10},
                    {"method": "email", "minutes": 60},
                ],
            },
            "attachments": [{"fileUrl": "https://drive.google.com/file"}],
            "focusTimeProperties": {
                "autoDeclineMode": "declineNone",
                "chatStatus": "doNotDisturb",
            },
            "source": {"url": "https://tracker.example.com/1", "title": "Ticket"},
            "htmlLink": "https://calendar.google.com/event?eid=1",
        }
        lines = format_event_details(enrich_event(event)).splitlines()
        assert lines[:3] == ["id\tev1", "summary\tStandup", "type\tfocusTime"]
        assert lines[-16:] == [
            "visibility\tprivate",
            "show-as\tfree",
            "attendee\ta@example.com\taccepted",
            "attendee\tb@example.com\tneedsAction (optional)",
            "guests-can-invite\tfalse",
            "guests-can-modify\ttrue",
            "guests-can-see-others\tfalse",
            "meet\thttps://meet.google.com/abc",
            "video-link\thttps://meet.google.com/abc",
            "recurrence\tRRULE:FREQ=DAILY; EXDATE:20250105T100000Z",
            "reminders\tpopup:10m, email:60m",
            "attachment\thttps://drive.google.com/file",
            "auto-decline\tdeclineNone",
            "chat-status\tdoNotDisturb",
            "source\thttps://tracker.example.com/1 (Ticket)",
            "link\thttps://calendar.google.com/event?eid=1",
        ]
        assert "description\tDaily sync" in lines
        assert "location\tRoom 1" in lines
        assert "color\t5" in lines

    def test_default_reminders_and_type(self):
        event = {**STANDUP, "eventType": "default", "reminders": {"useDefault": True}}
        lines = format_event_details(enrich_event(event)).splitlines()
        assert "reminders\t(calendar default)" in lines
        assert not any(line.startswith("type\t") for line in lines)
