"""Structured logging for eventzone.

Every ``logging.getLogger(__name__)`` record is rendered by structlog through a
``ProcessorFormatter`` on the root handler.  Records go to stderr; stdout is
reserved for command output (tables and JSON documents).

The running CLI command (``events list``, ``events all``, ...) and, when a
span is recording, the OpenTelemetry trace/span ids are attached to each record.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

import structlog
from opentelemetry import trace

_command_context: ContextVar[str | None] = ContextVar("eventzone_command", default=None)

# Third-party loggers that log every request at INFO.
_QUIET_LOGGERS = {"httpx": logging.WARNING, "httpcore": logging.WARNING}

LOG_FORMATS = ("text", "json")


def set_command_context(command: str | None) -> None:
    """Record the CLI command being run so log lines can be attributed to it."""
    _command_context.set(command)


def add_command_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    command = _command_context.get()
    if command:
        event_dict["command"] = command
    return event_dict


def add_otel_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Attach ``trace_id``/``span_id`` while a calendar fetch span is active."""
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        event_dict["trace_id"] = trace.format_trace_id(span_context.trace_id)
        event_dict["span_id"] = trace.format_span_id(span_context.span_id)
    return event_dict


def _parse_level(level: str) -> int:
    return logging.getLevelNamesMapping().get(level.strip().upper(), logging.WARNING)


def _pre_chain(fmt: str) -> list[structlog.types.Processor]:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso" if fmt == "json" else "%H:%M:%S"),
        add_command_context,
        add_otel_context,
        structlog.stdlib.ExtraAdder(),
    ]


def _stderr_handler(fmt: str, pre_chain: list[structlog.types.Processor]) -> logging.Handler:
    renderer: structlog.types.Processor
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=pre_chain,
        )
    )
    return handler


def configure_logging(level: str = "WARNING", fmt: str = "text") -> None:
    """Route all logging through structlog at *level*, rendered as ``text`` or ``json``.

    Calling it again replaces the previous handler.  Unknown level names fall
    back to WARNING; an unknown *fmt* renders as text.
    """
    pre_chain = _pre_chain(fmt)

    root = logging.getLogger()
    root.handlers[:] = [_stderr_handler(fmt, pre_chain)]
    root.setLevel(_parse_level(level))

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
