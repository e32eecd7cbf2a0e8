import logging
import os
import sys


def _default_level() -> int:
    name = os.environ.get("AQUAFLOW_LOG_LEVEL", "INFO").upper()
    return getattr(logging, name, logging.INFO)


def setup_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Sets up a logger with a standard format and console handler.

    Args:
        name (str): The name of the logger (usually __name__).
        level (int): The logging level (default: AQUAFLOW_LOG_LEVEL or INFO).

    Returns:
        logging.Logger: Configured logger instance.
    """
    if level is None:
        level = _default_level()

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Check if the logger already has handlers to avoid duplicate logs
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
