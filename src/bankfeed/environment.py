import enum
import logging

from rich.console import Console
from rich.logging import RichHandler


@enum.unique
class LogLevel(enum.Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


LOG_LEVEL_MAP = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


def configure_logging(log_level: LogLevel = LogLevel.WARNING) -> None:
    """Configure the root logger to render through rich on stderr."""
    logging.basicConfig(
        level=LOG_LEVEL_MAP[log_level],
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
