"""Logging configuration for bike-outliner."""

import sys

from loguru import logger


def configure_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Send log messages to stderr.

    ``verbose`` adds debug messages tagged with their module; ``quiet`` keeps
    only warnings and errors. ``verbose`` wins when both are set.
    """
    logger.remove()
    if verbose:
        logger.add(sys.stderr, level="DEBUG", format="{level.icon} {name}: {message}")
        return
    logger.add(sys.stderr, level="WARNING" if quiet else "INFO", format="{level.icon} {message}")
