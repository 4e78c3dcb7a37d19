import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_listener: Optional[QueueListener] = None
_queue_handler: Optional[QueueHandler] = None


def _resolve_level(level_name: str) -> int:
    level = getattr(logging, str(level_name).upper(), None)
    if isinstance(level, int):
        return level
    return logging.INFO


def configure_logging(level: str = "INFO", stream=None) -> logging.Logger:
    """Route all records through a queue so request handlers never wait on log I/O.

    The real stream handler lives behind a QueueListener thread. Calling this
    again replaces the previous listener.
    """
    global _listener, _queue_handler
    stop_logging()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    records: "queue.Queue[logging.LogRecord]" = queue.Queue(-1)
    _queue_handler = QueueHandler(records)
    root = logging.getLogger()
    root.addHandler(_queue_handler)
    root.setLevel(_resolve_level(level))

    _listener = QueueListener(records, handler, respect_handler_level=True)
    _listener.start()
    return logging.getLogger("kwacha_gateway")


def stop_logging() -> None:
    """Flush queued records, stop the listener thread and detach the queue handler."""
    global _listener, _queue_handler
    if _queue_handler is not None:
        logging.getLogger().removeHandler(_queue_handler)
        _queue_handler = None
    if _listener is not None:
        _listener.stop()
        _listener = None
