"""Logging setup for the command line tools."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Route the ``paket`` loggers through rich.

    Args:
        verbose: Log at DEBUG instead of WARNING
        console: Console to log to, defaults to stderr

    Returns:
        The configured ``paket`` logger
    """
    logger = logging.getLogger("paket")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False
    return logger
