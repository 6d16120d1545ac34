"""structlog setup for the rebalancer.

Every event emitted during a cycle carries the ``cycle_id`` and ``phase``
bound by the orchestrator through structlog contextvars. The report lines
go through the same pipeline, so one handler serves both.
"""

import logging
from typing import Literal

import structlog

LogFormat = Literal["console", "json"]

# Noisy below WARNING during every query.
_QUIET_LOGGERS = ("aiosqlite",)


def _renderer(log_format: LogFormat) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def setup_logging(log_level: str = "INFO", log_format: LogFormat = "console") -> None:
    """Route structlog events through stdlib logging to stderr.

    Args:
        log_level: Root level name, e.g. "INFO". Unknown names fall back to INFO.
        log_format: "console" for humans, "json" for log shippers.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
