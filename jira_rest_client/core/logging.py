import logging
import sys
import time
from contextlib import contextmanager
from typing import Any, Dict, Optional


class OperationFilter(logging.Filter):
    """Inject operation if present in record.extra"""

    def filter(self, record: logging.LogRecord) -> bool:
        # ensure operation attribute exists to satisfy formatter even if not provided
        if not hasattr(record, "operation"):
            record.operation = None
        return True


logger = logging.getLogger("jira_rest_client")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s operation=%(operation)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


# PUBLIC_INTERFACE
def configure_logging(level: str = "INFO") -> None:
    """
    Configure structured logging for the client loggers.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    for h in list(logger.handlers):
        logger.removeHandler(h)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(OperationFilter())

    logger.setLevel(log_level)
    logger.addHandler(handler)
    logger.propagate = False


# PUBLIC_INTERFACE
@contextmanager
def timed_log_debug(message: str, operation: Optional[str] = None, extra: Optional[Dict[str, Any]] = None):
    """
    Context manager to time a code block and log duration at debug level.

    Usage:
        with timed_log_debug("jira_http_request", extra={"method": "GET", "path": "search"}):
            # do work
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = int((time.perf_counter() - start) * 1000)
        data = {"operation": operation, "duration_ms": duration_ms}
        if extra:
            data.update(extra)
        logger.debug(message, extra=data)
