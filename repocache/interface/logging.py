import enum
import logging

from repocache import APP_NAME

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"

_handler = logging.StreamHandler()
_handler.setFormatter(logging.Formatter(LOG_FORMAT))


class LogLevel(str, enum.Enum):
    """Log levels accepted on the command line."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


def setup_logging(level: LogLevel) -> None:
    """Send log messages of the application to stderr."""
    logger = logging.getLogger(APP_NAME)
    logger.setLevel(level.value.upper())
    if _handler not in logger.handlers:
        logger.addHandler(_handler)
