"""Logging utilities for the sitegen server and CLI."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

_LOGGER_NAME = "sitegen"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the sitegen hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the sitegen logger with console output and an optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers so repeated configuration (tests, reloads) does not duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[sitegen] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


def install_exception_hooks(loop: asyncio.AbstractEventLoop) -> None:
    """Log unhandled errors raised inside background tasks instead of losing them."""
    logger = get_logger("server")

    def _handle(_: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        message = context.get("message", "Unhandled error in event loop")
        if exc is not None:
            logger.error("%s: %s", message, exc, exc_info=exc)
        else:
            logger.error("%s", message)

    loop.set_exception_handler(_handle)


__all__ = ["configure_logging", "get_logger", "install_exception_hooks"]
