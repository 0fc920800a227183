from __future__ import annotations
import logging
import sys
import threading
from typing import Optional, TextIO
import structlog

# Process-wide, install-once. structlog caches bound loggers on first use, so
# a configuration cannot be torn down and swapped within one process; unload
# leaves it in place and a later load reuses it.
_install_lock = threading.Lock()
_installed = False

_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_level(name: str) -> int:
    try:
        return _LEVELS[str(name).strip().lower()]
    except KeyError:
        raise ValueError(f"unknown log level: {name!r}") from None


def logging_installed() -> bool:
    with _install_lock:
        return _installed


def configure_logging(level: str = "info", sink: Optional[TextIO] = None) -> bool:
    """
    Install structlog for the whole process. ``sink`` is a host-supplied text
    stream; without one, records go through stdlib logging to stdout.
    Returns False (and changes nothing) if logging was already installed.
    """
    global _installed
    lvl = parse_level(level)
    with _install_lock:
        if _installed:
            return False

        timestamper = structlog.processors.TimeStamper(fmt="iso")
        if sink is not None:
            logger_factory = structlog.PrintLoggerFactory(file=sink)
        else:
            logger_factory = structlog.stdlib.LoggerFactory()

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.add_log_level,
                timestamper,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            context_class=dict,
            logger_factory=logger_factory,
            wrapper_class=structlog.make_filtering_bound_logger(lvl),
            cache_logger_on_first_use=True,
        )

        if sink is None:
            # also route stdlib logging -> stdout
            logging.basicConfig(format="%(message)s", stream=sys.stdout, level=lvl)

        _installed = True
    return True
