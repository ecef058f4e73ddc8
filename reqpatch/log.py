"""Logging setup for reqpatch."""

import logging

from rich.console import Console
from rich.logging import RichHandler

from .config import SolverSettings

LOGGER_NAME = "reqpatch"


def configure_logging(
    level: str | int | None = None,
    console: Console | None = None,
    settings: SolverSettings | None = None,
) -> logging.Logger:
    """Attach a rich handler to the package logger.

    Calling this more than once only updates the level.

    Args:
        level: Logging level name or number (defaults to ``settings.log_level``)
        console: Optional console to render to (defaults to stderr)
        settings: Settings to read the default level from (read from the environment if omitted)

    Returns:
        The configured package logger
    """
    if level is None:
        level = (settings or SolverSettings()).log_level

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)

    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    return logger
