"""Structured logging utilities for resume-extractor."""

import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

# Document being processed in the current context (thread or task)
document_id_var: ContextVar[Optional[str]] = ContextVar("document_id", default=None)


class ContextLogger:
    """Logger wrapper that renders structured data into plain-text records."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _format_extra_data(self, extra_data: Optional[dict[str, Any]]) -> str:
        """Format extra data as key=value pairs, floats to two decimals."""
        if not extra_data:
            return ""
        parts = [
            f"{k}={v:.2f}" if isinstance(v, float) else f"{k}={v}" for k, v in extra_data.items()
        ]
        return " [" + ", ".join(parts) + "]"

    def _log(self, level: int, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        """Log with extra data formatted as plain text."""
        if not self.logger.isEnabledFor(level):
            return

        document_id = document_id_var.get()
        if document_id:
            extra_data = dict(extra_data or {})
            extra_data["document_id"] = document_id

        self.logger.log(level, msg + self._format_extra_data(extra_data), **kwargs)

    def log(self, level: int, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        """Log at an explicit level with extra data."""
        self._log(level, msg, extra_data, **kwargs)

    def debug(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        """Log debug message with extra data."""
        self._log(logging.DEBUG, msg, extra_data, **kwargs)

    def info(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        """Log info message with extra data."""
        self._log(logging.INFO, msg, extra_data, **kwargs)

    def warning(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        """Log warning message with extra data."""
        self._log(logging.WARNING, msg, extra_data, **kwargs)

    def error(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        """Log error message with extra data."""
        self._log(logging.ERROR, msg, extra_data, **kwargs)

    def critical(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        """Log critical message with extra data."""
        self._log(logging.CRITICAL, msg, extra_data, **kwargs)


def setup_logging(log_level: str = "INFO"):
    """Configure application logging.

    Library code never calls this; applications embedding the extractor
    decide where records go.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root_logger.addHandler(handler)
    root_logger.setLevel(level)


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        ContextLogger instance
    """
    return ContextLogger(logging.getLogger(name))


@contextmanager
def document_context(document_id: Optional[str] = None) -> Iterator[str]:
    """Tag every record logged inside the block with a document id.

    The previous id is restored on exit, so nested parses keep their own tags.

    Args:
        document_id: Optional id. If not provided, a new UUID will be generated.

    Yields:
        The document id in effect
    """
    if document_id is None:
        document_id = str(uuid.uuid4())
    token = document_id_var.set(document_id)
    try:
        yield document_id
    finally:
        document_id_var.reset(token)


def get_document_id() -> Optional[str]:
    """Get the current document id from context."""
    return document_id_var.get()


class Timer:
    """Context manager for timing operations in milliseconds."""

    def __init__(self, name: str):
        self.name = name
        self.start_time: Optional[float] = None
        self.elapsed_ms: Optional[float] = None

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        if self.start_time is not None:
            self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000

    def get_elapsed_ms(self) -> float:
        """Get elapsed time in milliseconds, also while the timer is running."""
        if self.elapsed_ms is not None:
            return self.elapsed_ms
        if self.start_time is not None:
            return (time.perf_counter() - self.start_time) * 1000
        return 0.0
