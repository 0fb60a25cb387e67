from __future__ import annotations

import logging
import sys
from typing import Any, Union

import structlog

from ..config import LoggingSettings

_RESET = "\033[0m"
_BOLD = "\033[1m"
_DIM = "\033[2m"
_GRAY = "\033[90m"
_CYAN = "\033[96m"
_BLUE = "\033[94m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"

LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}

# Context keys rendered right after the event name, in this order.
PINNED_KEYS = ("handler", "instance_id", "step")


def _paint(value: Any) -> str:
    if value is None:
        return f"{_DIM}None{_RESET}"
    if isinstance(value, (bool, int, float)):
        return f"{_YELLOW}{value}{_RESET}"
    if isinstance(value, str):
        return f"{_GREEN}{value}{_RESET}"
    return str(value)


class WorkflowConsoleRenderer:
    """Human-readable renderer; falls back to JSON when stdout is not a TTY."""

    def __init__(self, colored: bool = True) -> None:
        self.colored = colored and sys.stdout.isatty()
        self._json = structlog.processors.JSONRenderer()

    def __call__(self, logger: Any, name: str, event_dict: dict) -> str:
        if not self.colored:
            return self._json(logger, name, event_dict)

        timestamp = event_dict.pop("timestamp", "")
        level = event_dict.pop("level", "info").upper()
        event = event_dict.pop("event", "")

        parts = [
            f"{_GRAY}[{timestamp}]{_RESET}",
            f"{LEVEL_COLORS.get(level, LEVEL_COLORS['INFO'])}{_BOLD}{level:8}{_RESET}",
            f"{_CYAN}{event}{_RESET}",
        ]
        ordered = [key for key in PINNED_KEYS if key in event_dict]
        ordered.extend(key for key in event_dict if key not in PINNED_KEYS)
        if ordered:
            pairs = [f"{_BLUE}{key}{_RESET}={_paint(event_dict[key])}" for key in ordered]
            parts.append(f"{_DIM}|{_RESET} " + " ".join(pairs))
        return " ".join(parts)


def setup_logging(level: int = logging.INFO, use_json: bool = False) -> None:
    """
    Configure structlog for the workflow worker.

    Args:
        level: Logging level (default: INFO)
        use_json: Emit one JSON object per line instead of colored output
    """
    renderer = structlog.processors.JSONRenderer() if use_json else WorkflowConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        level=level,
        stream=sys.stdout,
        format="[%(asctime)s] %(levelname)-8s %(name)s %(message)s",
        force=True,
    )
    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def configure_from_settings(settings: LoggingSettings) -> None:
    setup_logging(level=resolve_level(settings.level), use_json=settings.use_json)


def resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.INFO)
