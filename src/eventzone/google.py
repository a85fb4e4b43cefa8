"""Google Calendar v3 read client.

Only the calls eventzone needs are implemented: one page of expanded events,
a single event, the calendar list and a calendar's own ``timeZone``.  Event
payloads are returned as raw dicts; :mod:`eventzone.enrich` does all zone work.

Authentication is a refresh-token grant.  Access tokens are cached until shortly
before they expire, and a 401 triggers one forced refresh.  429/503 responses
are retried with exponential backoff (a 429 ``Retry-After`` wins).
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Annotated, Any
from urllib.parse import quote

import httpx
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

GOOGLE_OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"

RATE_LIMIT_RETRY_STATUS_CODES = frozenset({429, 503})
RATE_LIMIT_MAX_RETRIES = 3
RATE_LIMIT_BASE_BACKOFF_SECONDS = 1.0

DEFAULT_TOKEN_LIFETIME_SECONDS = 3600
TOKEN_EXPIRY_MARGIN_SECONDS = 60
MIN_TOKEN_LIFETIME_SECONDS = 30

MAX_EVENTS_PER_PAGE = 2500
ERROR_MESSAGE_LIMIT = 200

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CalendarError(RuntimeError):
    """Base error for anything that goes wrong talking to Google Calendar."""


class CalendarCredentialError(CalendarError):
    """The OAuth client credentials are missing, unreadable or malformed."""


class CalendarTokenRefreshError(CalendarError):
    """The refresh-token grant did not yield an access token."""


class CalendarRequestError(CalendarError):
    """The Calendar API answered with a non-2xx status."""

    def __init__(self, *, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Google Calendar API request failed ({status_code}): {message}")


def _credential_problem(exc: ValidationError) -> str:
    kinds = {error["type"] for error in exc.errors()}
    if "json_invalid" in kinds:
        return "Credential JSON must be valid JSON"
    if "model_type" in kinds:
        return "Credential JSON must decode to a JSON object"
    fields = sorted({str(error["loc"][0]) for error in exc.errors() if error["loc"]})
    return f"Credential JSON has missing or blank field(s): {', '.join(fields)}"


class GoogleOAuthCredentials(BaseModel):
    """The three values a refresh-token grant needs.

    Extra keys (``type``, ``quota_project_id``...) are ignored so that an
    ``authorized_user`` file written by Google tooling can be used as is.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    client_id: NonEmptyStr
    client_secret: NonEmptyStr
    refresh_token: NonEmptyStr

    @classmethod
    def from_json(cls, raw_value: str | bytes) -> GoogleOAuthCredentials:
        try:
            return cls.model_validate_json(raw_value)
        except ValidationError as exc:
            raise CalendarCredentialError(_credential_problem(exc)) from None

    @classmethod
    def from_file(cls, path: Path) -> GoogleOAuthCredentials:
        try:
            raw_value = path.read_bytes()
        except OSError as exc:
            raise CalendarCredentialError(f"Cannot read credential file {path}: {exc}") from exc
        return cls.from_json(raw_value)


class _TokenGrant(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: NonEmptyStr
    expires_in: int = DEFAULT_TOKEN_LIFETIME_SECONDS

    @field_validator("expires_in", mode="before")
    @classmethod
    def _positive_lifetime(cls, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
            return DEFAULT_TOKEN_LIFETIME_SECONDS
        return int(value)

    def usable_for(self) -> timedelta:
        seconds = max(self.expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, MIN_TOKEN_LIFETIME_SECONDS)
        return timedelta(seconds=seconds)


@dataclass(frozen=True)
class _CachedToken:
    value: str
    expires_at: datetime

    def is_fresh(self) -> bool:
        return datetime.now(UTC) < self.expires_at


class AccessTokenSource:
    """Hands out bearer tokens, exchanging the refresh token only when needed."""

    def __init__(
        self,
        credentials: GoogleOAuthCredentials,
        http_client: httpx.AsyncClient,
    ) -> None:
        self._credentials = credentials
        self._http_client = http_client
        self._cached: _CachedToken | None = None
        self._lock = asyncio.Lock()

    async def token(self, *, force_refresh: bool = False) -> str:
        async with self._lock:
            if force_refresh or self._cached is None or not self._cached.is_fresh():
                grant = await self._exchange()
                self._cached = _CachedToken(
                    value=grant.access_token,
                    expires_at=datetime.now(UTC) + grant.usable_for(),
                )
            return self._cached.value

    async def _exchange(self) -> _TokenGrant:
        form = self._credentials.model_dump() | {"grant_type": "refresh_token"}
        try:
            response = await self._http_client.post(
                GOOGLE_OAUTH_TOKEN_URL, data=form, headers={"Accept": "application/json"}
            )
        except httpx.HTTPError as exc:
            raise CalendarTokenRefreshError(f"Google OAuth token request failed: {exc}") from exc

        if not response.is_success:
            raise CalendarTokenRefreshError(
                f"Google OAuth token refresh failed ({response.status_code}): "
                f"{_google_error_text(response)}"
            )
        try:
            return _TokenGrant.model_validate_json(response.content)
        except ValidationError as exc:
            if any(error["type"] == "json_invalid" for error in exc.errors()):
                problem = "returned invalid JSON"
            else:
                problem = "response is missing a non-empty access_token"
            raise CalendarTokenRefreshError(f"Google OAuth token {problem}") from None


class EventPage(BaseModel):
    """One page of raw event payloads from ``events.list``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    items: list[dict[str, Any]] = Field(default_factory=list)
    next_page_token: str = ""

    @field_validator("items", mode="before")
    @classmethod
    def _keep_event_objects(cls, value: Any) -> list[dict[str, Any]]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError("non-list items field")
        return [item for item in value if isinstance(item, dict)]

    @field_validator("next_page_token", mode="before")
    @classmethod
    def _token_or_empty(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""


def google_rfc3339(value: datetime) -> str:
    """RFC 3339 in UTC with a ``Z`` suffix; naive values are taken as UTC."""
    aware = value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)
    return aware.isoformat().replace("+00:00", "Z")


def _single_line(text: str) -> str:
    return " ".join(text.split())[:ERROR_MESSAGE_LIMIT]


def _google_error_text(response: httpx.Response) -> str:
    """The ``error.message`` (or bare ``error``) of a Google error body, else its text."""
    try:
        body = response.json()
    except ValueError:
        body = None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        error = error.get("message")
    for candidate in (error, response.text):
        if isinstance(candidate, str) and candidate.strip():
            return _single_line(candidate)
    return "Request failed without an error payload"


_SECRET_ASSIGNMENT = re.compile(
    r"""
    (?P<key>["']?\b(?:client_secret|refresh_token|access_token|token)\b["']?)
    (?P<sep>\s*[:=]\s*)
    (?P<value>"[^"]*"|'[^']*'|[^\s,;}]+)
    """,
    re.IGNORECASE | re.VERBOSE,
)


def redact_credential_values(message: str) -> str:
    """Replace the value of any ``secret=...`` / ``"secret": "..."`` pair with ``[REDACTED]``."""
    return _SECRET_ASSIGNMENT.sub(lambda match: f"{match['key']}{match['sep']}[REDACTED]", message)


def sanitize_error_message(exc: Exception) -> str:
    """Credential-free, single-line, length-capped rendering of *exc*."""
    return _single_line(redact_credential_values(str(exc)))


def _retry_delay(response: httpx.Response, attempt: int) -> float | None:
    """Seconds to wait before retrying *response*, or ``None`` when it is final."""
    if response.status_code not in RATE_LIMIT_RETRY_STATUS_CODES:
        return None
    if attempt >= RATE_LIMIT_MAX_RETRIES:
        return None
    if response.status_code == 429:
        try:
            return float(response.headers["Retry-After"])
        except (KeyError, ValueError):
            pass
    return RATE_LIMIT_BASE_BACKOFF_SECONDS * (2**attempt)


def _calendar_path(calendar_id: str, *parts: str) -> str:
    segments = [calendar_id, *parts]
    return "/calendars/" + "/".join(quote(segment, safe="") for segment in segments)


class GoogleCalendarClient:
    """Authenticated read access to the Google Calendar v3 API."""

    def __init__(
        self,
        credentials: GoogleOAuthCredentials,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=30.0)
        self._tokens = AccessTokenSource(credentials, self._http_client)

    async def __aenter__(self) -> GoogleCalendarClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    async def _send(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        url = GOOGLE_CALENDAR_API_BASE_URL + path
        force_refresh = False
        reauthorized = False
        attempt = 0
        while True:
            token = await self._tokens.token(force_refresh=force_refresh)
            force_refresh = False
            try:
                response = await self._http_client.get(
                    url, params=params, headers={"Authorization": f"Bearer {token}"}
                )
            except httpx.HTTPError as exc:
                raise CalendarError(f"Google Calendar request failed: {exc}") from exc

            if response.status_code == 401 and not reauthorized:
                force_refresh = reauthorized = True
                continue

            delay = _retry_delay(response, attempt)
            if delay is None:
                return response
            attempt += 1
            logger.warning(
                "Calendar API returned %d for %s, retrying in %.1fs (attempt %d/%d)",
                response.status_code,
                path,
                delay,
                attempt,
                RATE_LIMIT_MAX_RETRIES,
            )
            await asyncio.sleep(delay)

    async def _get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        missing_ok: bool = False,
    ) -> dict[str, Any] | None:
        response = await self._send(path, params)
        if missing_ok and response.status_code == 404:
            return None
        if not response.is_success:
            raise CalendarRequestError(
                status_code=response.status_code, message=_google_error_text(response)
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise CalendarError(f"Google Calendar API returned invalid JSON for {path}") from exc
        if not isinstance(payload, dict):
            raise CalendarError(f"Google Calendar API returned a non-object payload for {path}")
        return payload

    async def list_events(
        self,
        calendar_id: str,
        *,
        time_min: str | None = None,
        time_max: str | None = None,
        max_results: int = 10,
        page_token: str | None = None,
        query: str | None = None,
        private_property: str | None = None,
        shared_property: str | None = None,
        fields: str | None = None,
    ) -> EventPage:
        """Fetch one page of single (expanded) events ordered by start time."""
        if max_results < 1:
            raise ValueError("max_results must be at least 1")

        optional = {
            "timeMin": time_min,
            "timeMax": time_max,
            "pageToken": page_token,
            "q": query,
            "privateExtendedProperty": private_property,
            "sharedExtendedProperty": shared_property,
            "fields": fields,
        }
        params: dict[str, Any] = {
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": min(max_results, MAX_EVENTS_PER_PAGE),
        }
        params.update(
            {key: value.strip() for key, value in optional.items() if value and value.strip()}
        )

        payload = await self._get_json(_calendar_path(calendar_id, "events"), params)
        try:
            return EventPage.model_validate(payload)
        except ValidationError as exc:
            raise CalendarError(
                f"Google Calendar events response is malformed: {exc.errors()[0]['msg']}"
            ) from None

    async def get_event(self, calendar_id: str, event_id: str) -> dict[str, Any] | None:
        """The raw event payload, or ``None`` when the calendar has no such event."""
        event_id = event_id.strip()
        if not event_id:
            raise ValueError("event_id must be a non-empty string")
        path = _calendar_path(calendar_id, "events", event_id)
        return await self._get_json(path, missing_ok=True)

    async def list_calendars(self) -> list[dict[str, Any]]:
        """Every calendar-list entry, following page tokens."""
        calendars: list[dict[str, Any]] = []
        params: dict[str, Any] | None = None
        while True:
            payload = await self._get_json("/users/me/calendarList", params) or {}
            items = payload.get("items")
            if isinstance(items, list):
                calendars.extend(item for item in items if isinstance(item, dict))
            next_token = payload.get("nextPageToken")
            if not isinstance(next_token, str) or not next_token:
                return calendars
            params = {"pageToken": next_token}

    async def get_calendar_timezone(self, calendar_id: str) -> str:
        """The calendar-level default zone, or ``""`` when the calendar has none."""
        payload = await self._get_json(_calendar_path(calendar_id)) or {}
        time_zone = payload.get("timeZone")
        return time_zone.strip() if isinstance(time_zone, str) else ""
