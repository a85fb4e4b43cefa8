"""CLI for eventzone — list and inspect Google Calendar events with resolved time zones."""

from __future__ import annotations

import asyncio
import functools
import logging
import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import click

from eventzone import __version__
from eventzone.config import CREDENTIALS_ENV_VAR, ConfigError, EventzoneConfig, load_config
from eventzone.enrich import aggregate_calendars, enrich_event, enrich_events
from eventzone.google import (
    CalendarError,
    GoogleCalendarClient,
    GoogleOAuthCredentials,
    google_rfc3339,
    sanitize_error_message,
)
from eventzone.logging import configure_logging, set_command_context
from eventzone.models import CalendarAggregate, EnrichedEventView
from eventzone.render import (
    calendar_events_table,
    events_list_payload,
    events_table,
    format_event_details,
    json_document,
)

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 7
DEFAULT_MAX_RESULTS = 10


@dataclass
class ListOptions:
    """Query options shared by ``events list`` and ``events all``."""

    time_min: str
    time_max: str
    max_results: int
    page_token: str | None
    query: str | None
    private_property: str | None
    shared_property: str | None
    fields: str | None

    def as_kwargs(self) -> dict[str, Any]:
        return {
            "time_min": self.time_min,
            "time_max": self.time_max,
            "max_results": self.max_results,
            "page_token": self.page_token,
            "query": self.query,
            "private_property": self.private_property,
            "shared_property": self.shared_property,
            "fields": self.fields,
        }


def _load_credentials(config: EventzoneConfig) -> GoogleOAuthCredentials:
    raw = os.environ.get(CREDENTIALS_ENV_VAR, "").strip()
    if raw:
        return GoogleOAuthCredentials.from_json(raw)
    return GoogleOAuthCredentials.from_file(config.credentials_file)


def build_client(config: EventzoneConfig) -> GoogleCalendarClient:
    return GoogleCalendarClient(_load_credentials(config))


def _handle_calendar_errors(func: Callable[..., None]) -> Callable[..., None]:
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> None:
        try:
            func(*args, **kwargs)
        except CalendarError as exc:
            raise click.ClickException(sanitize_error_message(exc)) from exc

    return wrapper


def _list_options(func: Callable[..., None]) -> Callable[..., None]:
    options = [
        click.option("--from", "time_min", default=None, help="Start of the window (RFC 3339)"),
        click.option("--to", "time_max", default=None, help="End of the window (RFC 3339)"),
        click.option(
            "--max", "max_results", type=click.IntRange(min=1), default=DEFAULT_MAX_RESULTS
        ),
        click.option("--page", "page_token", default=None, help="Page token from a previous run"),
        click.option("--query", default=None, help="Free-text search filter"),
        click.option("--private-prop", "private_property", default=None, help="key=value"),
        click.option("--shared-prop", "shared_property", default=None, help="key=value"),
        click.option("--fields", default=None, help="Partial-response field mask"),
        click.option("--timezone", "timezone", default=None, help="IANA zone used for display"),
        click.option("--weekday", "show_weekday", is_flag=True, help="Add weekday columns"),
        click.option("--json", "as_json", is_flag=True, help="Emit JSON"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_list_options(
    time_min: str | None,
    time_max: str | None,
    max_results: int,
    page_token: str | None,
    query: str | None,
    private_property: str | None,
    shared_property: str | None,
    fields: str | None,
) -> ListOptions:
    now = datetime.now(UTC).replace(microsecond=0)
    return ListOptions(
        time_min=time_min or google_rfc3339(now),
        time_max=time_max or google_rfc3339(now + timedelta(days=DEFAULT_WINDOW_DAYS)),
        max_results=max_results,
        page_token=page_token,
        query=query,
        private_property=private_property,
        shared_property=shared_property,
        fields=fields,
    )


def _print_next_page_hint(next_page_token: str) -> None:
    if next_page_token:
        click.echo(f"# Next page: --page {next_page_token}", err=True)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to eventzone.toml",
)
@click.option("--log-level", default=None, help="Override the configured log level")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, log_level: str | None) -> None:
    """eventzone — Google Calendar events rendered in a consistent time zone."""
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    configure_logging(level=log_level or config.logging.level, fmt=config.logging.format)
    ctx.obj = config


@cli.group()
@click.pass_context
def events(ctx: click.Context) -> None:
    """List and show calendar events."""
    set_command_context(f"events {ctx.invoked_subcommand}")


async def _fetch_event_page(
    config: EventzoneConfig,
    calendar_id: str,
    options: ListOptions,
) -> tuple[list[dict[str, Any]], str]:
    async with build_client(config) as client:
        page = await client.list_events(calendar_id, **options.as_kwargs())
    return page.items, page.next_page_token


@events.command("list")
@click.argument("calendar_id", required=False)
@_list_options
@click.pass_obj
@_handle_calendar_errors
def list_cmd(
    config: EventzoneConfig,
    calendar_id: str | None,
    time_min: str | None,
    time_max: str | None,
    max_results: int,
    page_token: str | None,
    query: str | None,
    private_property: str | None,
    shared_property: str | None,
    fields: str | None,
    timezone: str | None,
    show_weekday: bool,
    as_json: bool,
) -> None:
    """List events from one calendar (default: the configured calendar)."""
    resolved_calendar_id = calendar_id or config.default_calendar
    options = _build_list_options(
        time_min,
        time_max,
        max_results,
        page_token,
        query,
        private_property,
        shared_property,
        fields,
    )
    items, next_page_token = asyncio.run(_fetch_event_page(config, resolved_calendar_id, options))
    views = enrich_events(items, config.override_for(resolved_calendar_id, timezone))

    if as_json:
        click.echo(json_document(events_list_payload(views, next_page_token)))
        return
    if not views:
        click.echo("No events", err=True)
        return
    click.echo(events_table(views, show_weekday=show_weekday))
    _print_next_page_hint(next_page_token)


async def _aggregate_all(
    config: EventzoneConfig,
    options: ListOptions,
    timezone: str | None,
) -> CalendarAggregate | None:
    async with build_client(config) as client:
        calendars = await client.list_calendars()
        calendar_ids = [
            entry["id"] for entry in calendars if isinstance(entry.get("id"), str) and entry["id"]
        ]
        if not calendar_ids:
            return None

        async def fetch_page(calendar_id: str) -> Sequence[dict[str, Any]]:
            page = await client.list_events(calendar_id, **options.as_kwargs())
            return page.items

        if timezone and timezone.strip():
            return await aggregate_calendars(fetch_page, calendar_ids, timezone)
        return await aggregate_calendars(
            fetch_page,
            calendar_ids,
            config.default_timezone,
            calendar_overrides=config.calendar_timezones,
        )


@events.command("all")
@_list_options
@click.pass_obj
@_handle_calendar_errors
def all_cmd(
    config: EventzoneConfig,
    time_min: str | None,
    time_max: str | None,
    max_results: int,
    page_token: str | None,
    query: str | None,
    private_property: str | None,
    shared_property: str | None,
    fields: str | None,
    timezone: str | None,
    show_weekday: bool,
    as_json: bool,
) -> None:
    """List events across every calendar in the calendar list."""
    options = _build_list_options(
        time_min,
        time_max,
        max_results,
        page_token,
        query,
        private_property,
        shared_property,
        fields,
    )
    aggregate = asyncio.run(_aggregate_all(config, options, timezone))
    if aggregate is None:
        click.echo("No calendars", err=True)
        return

    if as_json:
        click.echo(json_document(aggregate.to_payload()))
        return
    if not aggregate.events:
        click.echo("No events", err=True)
        return
    click.echo(calendar_events_table(aggregate.events, show_weekday=show_weekday))


async def _fetch_event_view(
    config: EventzoneConfig,
    calendar_id: str,
    event_id: str,
    timezone: str | None,
) -> EnrichedEventView | None:
    async with build_client(config) as client:
        event = await client.get_event(calendar_id, event_id)
        if event is None:
            return None
        override = config.override_for(calendar_id, timezone)
        if not override:
            try:
                override = await client.get_calendar_timezone(calendar_id)
            except CalendarError as exc:
                logger.warning(
                    "calendar %s: timezone lookup failed: %s",
                    calendar_id,
                    sanitize_error_message(exc),
                )
    return enrich_event(event, override)


@events.command("get")
@click.argument("event_id")
@click.option("--calendar", "calendar_id", default=None, help="Calendar containing the event")
@click.option("--timezone", "timezone", default=None, help="IANA zone used for display")
@click.option("--json", "as_json", is_flag=True, help="Emit JSON")
@click.pass_obj
@_handle_calendar_errors
def get_cmd(
    config: EventzoneConfig,
    event_id: str,
    calendar_id: str | None,
    timezone: str | None,
    as_json: bool,
) -> None:
    """Show a single event."""
    resolved_calendar_id = calendar_id or config.default_calendar
    view = asyncio.run(_fetch_event_view(config, resolved_calendar_id, event_id, timezone))
    if view is None:
        raise click.ClickException(f"Event not found: {event_id}")

    if as_json:
        click.echo(json_document({"event": view.to_payload()}))
        return
    click.echo(format_event_details(view))


def main() -> None:
    cli()
