"""Logging setup shared by every witffi module.

Modules obtain their logger through :func:`get_logger`; the CLI calls
:func:`configure_logging` once to attach a rich handler.
"""

import logging

from rich.logging import RichHandler

_ROOT_LOGGER_NAME = "witffi"
_configured = False


def configure_logging(level: str = "WARNING") -> None:
    """Attach a RichHandler to the package logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR).
    """
    global _configured

    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    logger.setLevel(level.upper())

    if not _configured:
        handler = RichHandler(show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
        _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger nested under the package logger.

    Args:
        name: Usually ``__name__`` of the calling module.
    """
    if name == _ROOT_LOGGER_NAME or name.startswith(_ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")
