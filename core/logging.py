"""
core/logging.py -- Process-wide logging setup, one call at startup.

Application modules log through plain stdlib loggers:

    logger = logging.getLogger("sso.auth")
    logger.info("login attempt", extra={"op": "auth.login", "email": email})

Per-call context travels in `extra`, never in a shared bound logger, so
concurrent requests cannot leak fields into each other's records.

Rendering is done by structlog's ProcessorFormatter attached to the root
handler. Records from third-party loggers (uvicorn, sqlalchemy) go through
the same formatter, so every line on stdout has one shape per tier:

    local -- coloured console lines, DEBUG
    dev   -- JSON lines, DEBUG
    prod  -- JSON lines, INFO

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import sys

import structlog

# LogRecord attributes that are not user-supplied `extra` fields.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

_LEVELS = {
    "local": logging.DEBUG,
    "dev": logging.DEBUG,
    "prod": logging.INFO,
}


def _add_record_extras(logger, method_name: str, event_dict: dict) -> dict:
    """Copy `extra={...}` fields from the stdlib LogRecord into the event dict."""
    record = event_dict.get("_record")
    if record is None:
        return event_dict
    for key, value in vars(record).items():
        if key not in _RESERVED_ATTRS and not key.startswith("_") and key not in event_dict:
            event_dict[key] = value
    return event_dict


def build_formatter(env: str) -> structlog.stdlib.ProcessorFormatter:
    """Return the formatter for the given environment tier."""
    if env == "local":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_record_extras,
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )


def setup_logging(env: str) -> None:
    """Configure the root logger for the environment tier.

    Raises ValueError for an unknown tier. Replaces any handlers already on
    the root logger so repeated calls (tests, reloads) do not duplicate output.
    """
    if env not in _LEVELS:
        raise ValueError(f"unknown environment tier: {env!r}")
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(env))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(_LEVELS[env])
    # uvicorn installs its own handlers; route its records through ours.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True
