"""structlog setup shared by the API and services.

Every log line passes through ``redact_sensitive`` before rendering, so
passwords, hashes, tokens and cookies never reach the output even when a
caller binds them by mistake.
"""

import logging
import sys
from typing import Any, Dict, List

import structlog

SENSITIVE_KEY_FRAGMENTS = (
    "password",
    "secret",
    "token",
    "authorization",
    "cookie",
)

REDACTED = "REDACTED"


def redact_sensitive(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Replace the value of any key containing a sensitive fragment (case-insensitive)."""
    for key in list(event_dict.keys()):
        key_lower = key.lower()
        if any(fragment in key_lower for fragment in SENSITIVE_KEY_FRAGMENTS):
            event_dict[key] = REDACTED
    return event_dict


def _processors(json_output: bool) -> List[Any]:
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_sensitive,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog once at startup.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR; unknown names fall back to INFO
        json_output: JSON lines when True, human-readable console lines otherwise
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=_processors(json_output),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    return logger.bind(logger_name=name) if name else logger
