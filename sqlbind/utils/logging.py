"""Logging helpers for sqlbind.

Every logger lives under the ``sqlbind`` namespace. Library code attaches the
shape of what it just did (dialect, record type, column and argument counts)
to its records through :func:`log_with_context`. Applications that want that
context in their output install :class:`StructuredFormatter`::

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.getLogger("sqlbind").addHandler(handler)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final

from sqlbind.utils.serializers import to_json

if TYPE_CHECKING:
    from logging import LogRecord

__all__ = (
    "CONTEXT_ATTR",
    "ROOT_LOGGER_NAME",
    "StructuredFormatter",
    "get_logger",
    "log_with_context",
)

ROOT_LOGGER_NAME: Final = "sqlbind"
CONTEXT_ATTR: Final = "extra_fields"


class StructuredFormatter(logging.Formatter):
    """Render each record as a single-line JSON object.

    Context passed to :func:`log_with_context` is merged into the top level of
    the object. It never replaces the base keys (``timestamp``, ``level``,
    ``logger``, ``message``, ``location``). Values JSON cannot encode are
    written as their ``repr``.
    """

    def format(self, record: LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        for key, value in getattr(record, CONTEXT_ATTR, {}).items():
            entry.setdefault(key, value)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return to_json(entry)


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger in the ``sqlbind`` namespace.

    Args:
        name: Logger name; prefixed with ``sqlbind.`` when it is outside the
            namespace. ``None`` returns the root ``sqlbind`` logger.

    Returns:
        The logger.
    """
    if name is None or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Log ``message`` with structured context attached to the record.

    The context is stored on the record as ``extra_fields``. The record's
    location is the caller of this function.

    Args:
        logger: Logger to use.
        level: Log level.
        message: Log message.
        **context: Fields describing the event.
    """
    if not logger.isEnabledFor(level):
        return
    logger.log(level, message, extra={CONTEXT_ATTR: context}, stacklevel=2)
