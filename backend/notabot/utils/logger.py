"""Logging configuration for notabot."""

import logging
import sys


def setup_logger(verbose: bool = False) -> logging.Logger:
    """
    Configure logging for the server.

    Args:
        verbose: If True, show DEBUG records (rejected moves, poll ticks)

    Returns:
        The configured root logger
    """
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Clear any existing handlers
    logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(formatter)

    # Only game/server events on the console; library chatter stays quiet
    console_handler.addFilter(lambda record: record.name.startswith("notabot"))

    logger.addHandler(console_handler)
    return logger
