"""Structured logging setup for the return claims reasoner."""

from contextlib import contextmanager
import logging
from contextvars import ContextVar
from typing import Optional, Dict, Any
from pathlib import Path

# Fields every record carries, so format strings may reference them safely
DEFAULT_CONTEXT: Dict[str, Any] = {"claim_id": "-", "correlation_id": "-"}

_log_context: ContextVar[Dict[str, Any]] = ContextVar("return_reasoner_log_context", default={})


class ContextFilter(logging.Filter):
    """Add request context information to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context fields to log record."""
        fields = dict(DEFAULT_CONTEXT)
        fields.update(_log_context.get())
        for key, value in fields.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


_context_filter = ContextFilter()


def setup_logging(
    level: str = "INFO",
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Set up structured logging with optional file output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format string for log messages
        log_file: Optional path to log file

    Returns:
        Configured root logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(_context_filter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(_context_filter)
        root_logger.addHandler(file_handler)

    return root_logger


def set_context(**kwargs):
    """
    Set context fields for all subsequent log messages in the current context.

    Example:
        set_context(claim_id="6f1c...", correlation_id="a9e2...")
        logger.info("Analyzing return")  # Record carries both fields
    """
    context = dict(_log_context.get())
    context.update(kwargs)
    _log_context.set(context)


def get_context() -> Dict[str, Any]:
    """Return a copy of the current logging context."""
    return dict(_log_context.get())


def clear_context():
    """Clear all context fields."""
    _log_context.set({})


@contextmanager
def log_context(**context_kwargs):
    """
    Add context fields for the duration of a block, restoring the previous
    context on exit.

    Example:
        with log_context(claim_id=claim_id):
            pipeline_step()
    """
    token = _log_context.set({**_log_context.get(), **context_kwargs})
    try:
        yield
    finally:
        _log_context.reset(token)
