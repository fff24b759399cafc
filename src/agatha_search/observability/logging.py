"""Structured logging for workflow runs, built on structlog."""

import logging

import structlog

from ..config import LoggingSettings, get_settings

RUN_CONTEXT_KEYS = ("run_id", "operation")

_configured = False


def _processors(json_output: bool) -> list:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_output:
        # ConsoleRenderer prints tracebacks itself
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def setup_structured_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Route structlog events through stdlib logging. Only the first call has effect.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR)
        json_output: One JSON object per line; otherwise human-readable console output
    """
    global _configured
    if _configured:
        return

    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))
    structlog.configure(
        processors=_processors(json_output),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Set up structured logging and the package log level from settings."""
    settings = settings or get_settings().logging
    setup_structured_logging(level=settings.level, json_output=settings.json_output)
    logging.getLogger("agatha_search").setLevel(getattr(logging, settings.level.upper()))


def bind_run_context(run_id: str, operation: str) -> None:
    """Attach run_id and operation to every log event of the current async context."""
    structlog.contextvars.bind_contextvars(run_id=run_id, operation=operation)


def clear_run_context() -> None:
    structlog.contextvars.unbind_contextvars(*RUN_CONTEXT_KEYS)


def get_run_logger(name: str = "agatha_search") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
