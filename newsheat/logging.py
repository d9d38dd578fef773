"""Structured logging configuration using structlog.

JSON lines in production (LOG_FORMAT=json), colored console otherwise. Engine
modules log through ``logging.getLogger(__name__)``; the root handler installed
here renders those records with the same processor chain, so request ids bound
by the API middleware show up on build and labeling logs too.
"""

import logging
import sys
from typing import TextIO

import structlog

from newsheat.config import LOG_FORMAT, LOG_LEVEL

# httpx logs one INFO line per OpenRouter request.
_QUIET_LOGGERS = ("httpx", "httpcore")

_HANDLER_NAME = "newsheat"


def _shared_processors() -> list[structlog.types.Processor]:
    callsite = structlog.processors.CallsiteParameterAdder(
        [structlog.processors.CallsiteParameter.MODULE, structlog.processors.CallsiteParameter.FUNC_NAME]
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        callsite,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(log_format: str | None = None, level: str | None = None, stream: TextIO | None = None) -> None:
    """Route structlog and stdlib records through one formatter.

    Safe to call more than once: the handler installed by a previous call is
    replaced, other root handlers (pytest's capture, uvicorn's) are left alone.
    """
    fmt = (log_format or LOG_FORMAT).lower()
    level_name = (level or LOG_LEVEL).upper()
    pre_chain = _shared_processors()

    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer(fmt)],
        foreign_pre_chain=pre_chain,
    ))

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None, **initial_values) -> structlog.stdlib.BoundLogger:
    """structlog logger, optionally named and pre-bound with context."""
    logger = structlog.get_logger(name) if name else structlog.get_logger()
    return logger.bind(**initial_values) if initial_values else logger
