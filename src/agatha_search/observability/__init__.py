"""Observability helpers: structured logging with workflow run context."""

from .logging import (
    bind_run_context,
    clear_run_context,
    configure_logging,
    get_run_logger,
    setup_structured_logging,
)

__all__ = [
    "bind_run_context",
    "clear_run_context",
    "configure_logging",
    "get_run_logger",
    "setup_structured_logging",
]
