"""Logging configuration for the svcexporter commands."""

import logging
import os
import sys
import threading

LOG_LEVEL_ENV = "SVCEXPORTER_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_config_lock = threading.Lock()
_configured = False


def resolve_level(level: str | None) -> int:
    """
    Resolve a level name, falling back to $SVCEXPORTER_LOG_LEVEL and then INFO.

    Raises:
        ValueError: The name is not a logging level.
    """
    name = (level or os.environ.get(LOG_LEVEL_ENV) or "INFO").upper()
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        raise ValueError(f"unknown log level {name!r}")
    return value


def setup_logging(level: str | None = None, stream=None) -> None:
    """Send svcexporter logs to stderr (or ``stream``). Only the first call has effect."""
    global _configured
    with _config_lock:
        if _configured:
            return
        handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root = logging.getLogger("svcexporter")
        root.addHandler(handler)
        root.setLevel(resolve_level(level))
        _configured = True


def reset_logging() -> None:
    """Remove handlers installed by setup_logging."""
    global _configured
    with _config_lock:
        root = logging.getLogger("svcexporter")
        for handler in list(root.handlers):
            root.removeHandler(handler)
        root.setLevel(logging.NOTSET)
        _configured = False
