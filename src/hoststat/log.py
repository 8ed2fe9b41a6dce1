"""Structured logging configuration using structlog."""

import sys

import structlog

from hoststat.errors import ProbeFailure

_LEVELS = {"debug": 10, "info": 20, "warning": 30, "warn": 30, "error": 40, "critical": 50}


def setup_logging(level: str = "info", json: bool = False) -> None:
    """
    Configure structlog for hoststat.

    Logs go to stderr so they never interleave with the dashboard on stdout.

    Args:
        level: Minimum level name to emit.
        json: Render JSON lines instead of the coloured console format.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_LEVELS.get(level.lower(), 20)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structlog logger, optionally bound to a component name.

    The logger stays lazy: module-level loggers pick up the configuration
    from a later setup_logging() call on first use.
    """
    if name:
        return structlog.get_logger(component=name)
    return structlog.get_logger()


def log_probe_failure(logger: structlog.stdlib.BoundLogger, failure: ProbeFailure) -> None:
    """Emit the standard warning for a ProbeFailure."""
    logger.warning("probe_failure", probe=failure.probe, reason=failure.reason)
