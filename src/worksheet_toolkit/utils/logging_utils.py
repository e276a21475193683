"""
Logging utilities for the CLI and for hosts that show log output in a
console panel.
"""
from __future__ import annotations

import logging
from queue import Queue
from typing import Optional

CLI_FORMAT = "%(levelname)s %(name)s: %(message)s"
TOOLKIT_LOGGER = "worksheet_toolkit"

# Host consoles only style three levels
_CONSOLE_LEVELS = {"DEBUG": "INFO", "CRITICAL": "ERROR"}


class QueueLogHandler(logging.Handler):
    """
    Forward toolkit log records to a host console queue.

    Each record is put on the queue as a ``(message, level)`` tuple, where
    level is one of INFO, WARNING or ERROR.
    """

    def __init__(self, log_queue: Queue, level: int = logging.INFO):
        super().__init__(level)
        self.log_queue = log_queue
        self.setFormatter(logging.Formatter("%(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = _CONSOLE_LEVELS.get(record.levelname, record.levelname)
            self.log_queue.put((self.format(record), level))
        except Exception:
            self.handleError(record)


def attach_queue_handler(
    log_queue: Queue,
    logger_name: Optional[str] = TOOLKIT_LOGGER,
    level: int = logging.INFO,
) -> QueueLogHandler:
    """
    Start forwarding records from ``logger_name`` to ``log_queue``.

    The logger's own level is lowered to ``level`` when it would otherwise
    filter the records out before they reach the handler.

    Returns:
        The attached handler, to pass to detach_queue_handler later.
    """
    handler = QueueLogHandler(log_queue, level)
    target = logging.getLogger(logger_name)
    target.addHandler(handler)
    if target.getEffectiveLevel() > level:
        target.setLevel(level)
    return handler


def detach_queue_handler(handler: QueueLogHandler, logger_name: Optional[str] = TOOLKIT_LOGGER) -> None:
    """Stop forwarding records to the handler's queue."""
    logging.getLogger(logger_name).removeHandler(handler)


def configure_cli_logging(verbose: int = 0) -> int:
    """
    Configure root logging for command line use.

    Args:
        verbose: 0 = WARNING, 1 = INFO, 2+ = DEBUG

    Returns:
        The level that was set.
    """
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=CLI_FORMAT, force=True)
    return level
