"""structlog setup with Splunk key=value and JSON output."""

import logging
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

from .config import Config

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _splunk_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return str(value).lower()
    text = str(value)
    if " " in text or "=" in text:
        escaped = text.replace('"', '\\"')
        return f'"{escaped}"'
    return text


def splunk_processor(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> str:
    """Render an event as one Splunk-friendly line.

    ``2026-01-08T12:15:00Z INFO  dashboard.computed unit_count=3``. Keys
    are sorted; keys starting with an underscore are dropped.
    """
    level = str(event_dict.pop("level", "info")).upper()
    event = event_dict.pop("event", "")
    fields = " ".join(
        f"{key}={_splunk_value(value)}"
        for key, value in sorted(event_dict.items())
        if not key.startswith("_")
    )
    line = f"{_utc_now():%Y-%m-%dT%H:%M:%SZ} {level:5} {event}"
    return f"{line} {fields}" if fields else line


def json_processor(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Stamp the event with an ISO timestamp and an upper-case level."""
    event_dict["timestamp"] = _utc_now().isoformat()
    event_dict["level"] = str(event_dict.get("level", method_name)).upper()
    return event_dict


def _handlers(config: Config) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.logging.file:
        config.logging.file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.logging.file, encoding="utf-8"))
    return handlers


def configure_logging(config: Config) -> structlog.stdlib.BoundLogger:
    """Route structlog through stdlib logging using the configured format.

    Returns:
        A logger bound to the root.
    """
    logging.basicConfig(
        format="%(message)s",
        level=LEVELS.get(config.logging.level, logging.INFO),
        handlers=_handlers(config),
        force=True,
    )

    if config.logging.format == "json":
        renderers = [json_processor, structlog.processors.JSONRenderer()]
    else:
        renderers = [splunk_processor]

    structlog.configure(
        processors=[structlog.stdlib.add_log_level, *renderers],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger()


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, optionally named after a module."""
    return structlog.get_logger(name)
