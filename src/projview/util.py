"""Utility helpers for logging and timing."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(log_file: Path | None = None, verbose: bool = False) -> None:
    """Configure root logging to console and optionally a file."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


@contextmanager
def log_elapsed(logger: logging.Logger, label: str, level: int = logging.DEBUG) -> Iterator[None]:
    """Log how long the wrapped block took."""
    t0 = time.perf_counter()
    try:
        yield
    finally:
        logger.log(level, "%s in %.3fs", label, time.perf_counter() - t0)
