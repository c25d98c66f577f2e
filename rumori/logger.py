"""
Logging for the Rumori client.

Everything logs under the ``rumori`` namespace. The level comes from
``LOG_LEVEL`` (or ``DEBUG``) in the environment rather than from
``Settings``, because logging is set up before the backend settings are
validated.
"""
import logging
import os
import sys
from typing import Optional

ROOT_LOGGER = "rumori"
CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'

# The supabase client logs every HTTP request at INFO through these
CHATTY_LIBRARIES = ("httpx", "httpcore", "hpack")


def get_debug_mode() -> bool:
    return os.getenv('DEBUG', 'false').lower() in ('1', 'true', 'yes')


def get_log_level() -> str:
    level = os.getenv('LOG_LEVEL', '').upper()
    if level in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
        return level
    return "DEBUG" if get_debug_mode() else "INFO"


class ColoredFormatter(logging.Formatter):
    """Colours the level name of console records."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        color = self.COLORS.get(record.levelname)
        if color:
            # Copy so file handlers sharing the record see the plain name
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_colors: bool = True
) -> logging.Logger:
    """
    (Re)configure the ``rumori`` logger and return it.

    Args:
        level: Logging level name
        log_file: Also write records, with source locations, to this file
        enable_colors: Colour level names on the console
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        ColoredFormatter(CONSOLE_FORMAT) if enable_colors else logging.Formatter(CONSOLE_FORMAT)
    )
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    # Request lines are only interesting when debugging
    library_level = logging.DEBUG if logger.level <= logging.DEBUG else logging.WARNING
    for name in CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)

    return logger


def get_logger(name: str) -> logging.Logger:
    """``rumori.<name>``, a child of the configured package logger."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


main_logger = setup_logging(
    level=get_log_level(),
    log_file=os.getenv('LOG_FILE') or None,
    enable_colors=sys.stdout.isatty(),
)
