"""structlog configuration for todoctl.

Host modules log through the stdlib (``logging.getLogger(__name__)``);
plugins log through :func:`plugin_logger`. Both end up in one
``ProcessorFormatter`` on stderr, either as console lines or, with
``--log-json``, as one JSON object per line.

Every line a plugin emits carries its name: a ``plugin`` key in JSON, a
``[name]`` prefix on the console.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any, TextIO

import structlog

PLUGIN_LOGGER_NAME = "todoctl.plugin"

# Third-party loggers that are noisy at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore")


def _prefix_plugin_name(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    plugin = event_dict.pop("plugin", None)
    if plugin:
        event_dict["event"] = f"[{plugin}] {event_dict.get('event', '')}"
    return event_dict


def _renderers(log_json: bool, stream: TextIO) -> list[structlog.types.Processor]:
    if log_json:
        return [structlog.processors.JSONRenderer()]
    return [
        _prefix_plugin_name,
        structlog.dev.ConsoleRenderer(colors=stream.isatty()),
    ]


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Route todoctl and plugin logs to *stream* (stderr by default).

    Args:
        verbose: DEBUG for todoctl and plugin loggers. Otherwise WARNING+.
        log_json: Render JSON lines instead of console output.
        stream: Destination; mainly for tests.
    """
    stream = stream or sys.stderr
    level = logging.DEBUG if verbose else logging.WARNING

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_renderers(log_json, stream),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger("todoctl").setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def plugin_logger(plugin_name: str) -> structlog.stdlib.BoundLogger:
    """Logger handed to a plugin as ``ctx.log``, bound to *plugin_name*."""
    return structlog.get_logger(PLUGIN_LOGGER_NAME).bind(plugin=plugin_name)
