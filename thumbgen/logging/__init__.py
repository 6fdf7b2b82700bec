"""Structured logging module."""

from .config import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    job_context,
    unbind_context,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "job_context",
    "unbind_context",
]
