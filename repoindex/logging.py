"""Logging setup shared by the repoindex CLI and service."""

from __future__ import annotations

import logging
from pathlib import Path

ROOT_LOGGER = "repoindex"
CONSOLE_FORMAT = "[repoindex] %(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``repoindex.<name>``, or the package logger when ``name`` is empty."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


def _console_level(verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Send repoindex records to stderr and, optionally, to ``log_file``.

    ``verbose`` wins over ``quiet``. The file sink always records DEBUG so a
    quiet run still leaves batch failures behind for inspection. Calling this
    again replaces the handlers installed by the previous call.
    """
    console_level = _console_level(verbose, quiet)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    logger_level = console_level
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(logging.DEBUG)
        sink.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(sink)
        logger_level = logging.DEBUG
    logger.setLevel(logger_level)
    return logger


__all__ = ["configure_logging", "get_logger"]
