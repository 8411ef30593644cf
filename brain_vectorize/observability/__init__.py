"""
Observability

Structured logging (structlog) shared by every layer.
"""

from .logging import setup_logging, get_logger, bind_run_id, clear_run_id

__all__ = [
    "setup_logging",
    "get_logger",
    "bind_run_id",
    "clear_run_id"
]
