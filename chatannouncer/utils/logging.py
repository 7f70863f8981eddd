"""Logging setup for the chat announcer.

The announcer and the uvicorn server share one handler, so a configured log
file holds both pipeline and HTTP records. Without a log file everything goes
to stderr. Access log lines for the endpoints the browser client polls are
dropped unless the level is DEBUG.
"""

import logging
import sys

_configured = False

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Loggers that receive the shared handler; uvicorn.error and uvicorn.access
# propagate into "uvicorn".
_LOGGER_NAMES = ("chatannouncer", "uvicorn")

POLLED_PATHS = ("/status", "/health")


class PollingAccessFilter(logging.Filter):
    """Drops uvicorn access records for polled status endpoints."""

    def __init__(self, paths: tuple[str, ...] = POLLED_PATHS):
        super().__init__()
        self._needles = tuple(f'"GET {path} ' for path in paths)

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not any(needle in message for needle in self._needles)


def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> None:
    """Configure logging for the announcer and its HTTP server.

    Args:
        level: Logging level (default: INFO).
        log_file: Path to a log file. If given, logs go to the file.
            If None, logs go to stderr.
    """
    global _configured
    if _configured:
        return

    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))

    for name in _LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.addHandler(handler)

    if level > logging.DEBUG:
        logging.getLogger("uvicorn.access").addFilter(PollingAccessFilter())
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the chatannouncer namespace.

    Args:
        name: Module area (e.g., "chat.parser").

    Returns:
        Logger instance.
    """
    return logging.getLogger(f"chatannouncer.{name}")
