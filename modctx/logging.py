"""Logging helpers shared by the compiler, the CLI and the service."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator

_LOGGER_NAME = "modctx"
_CONSOLE_FORMAT = "[modctx] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a component logger below the ``modctx`` logger."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Attach console (and optionally file) handlers to the ``modctx`` logger.

    Calling this repeatedly replaces previously installed handlers, so a long
    running service that compiles many repositories does not duplicate output.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(level)
        sink.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(sink)

    return logger


@contextmanager
def log_stage(logger: logging.Logger, stage: str) -> Iterator[Dict[str, float]]:
    """Log the start and end of a pipeline stage and expose its duration.

    The yielded mapping receives ``duration_ms`` once the block exits.
    """
    timing: Dict[str, float] = {}
    logger.debug("Stage %s started", stage)
    started = time.perf_counter()
    try:
        yield timing
    finally:
        timing["duration_ms"] = round((time.perf_counter() - started) * 1000, 1)
        logger.debug("Stage %s finished in %.1f ms", stage, timing["duration_ms"])


__all__ = ["configure_logging", "get_logger", "log_stage"]
