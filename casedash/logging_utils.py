"""
Logging utilities for the main process and the worker process.

The worker has no handlers of its own: it forwards records through a
multiprocessing queue and the bridge replays them into the main process
handlers with a `QueueListener`.
"""
from __future__ import annotations

import logging
import multiprocessing
from logging.handlers import QueueHandler, QueueListener
from typing import Optional

LOG_FORMAT = "%(asctime)s %(processName)s %(name)s %(levelname)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the main process (idempotent)."""
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)


def configure_worker_logging(mp_log_queue: Optional[multiprocessing.Queue], level: str = "INFO") -> None:
    """
    Configure logging in the worker process to send records to a
    multiprocessing queue.

    Args:
        mp_log_queue: Queue the main process listens on. None keeps the
            worker's default logging untouched.
        level: Log level name for the worker's root logger.
    """
    if mp_log_queue is None:
        return
    root = logging.getLogger()
    root.handlers = []
    root.addHandler(QueueHandler(mp_log_queue))
    root.setLevel(level)


def start_log_listener(mp_log_queue: multiprocessing.Queue) -> QueueListener:
    """
    Start a listener that replays worker records into the main process.

    Records are handed to the logger they were emitted on, so the main
    process' own handler and level configuration applies.

    Returns:
        The started listener; call `stop()` on shutdown.
    """
    listener = QueueListener(mp_log_queue, _ReplayHandler(), respect_handler_level=False)
    listener.start()
    return listener


class _ReplayHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        logger = logging.getLogger(record.name)
        if logger.isEnabledFor(record.levelno):
            logger.handle(record)
