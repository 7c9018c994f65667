"""Per-run, append-only log file."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

LOGGER_NAME = "dotlink"
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def log_path_for(log_dir: Path, started: datetime) -> Path:
    return log_dir / f"dotlink-{started.strftime('%Y%m%d-%H%M%S')}.log"


@contextmanager
def run_log(log_dir: Path, started: datetime, *, verbose: bool = False) -> Iterator[Path]:
    """Attach a file handler to the ``dotlink`` logger for the duration of a run.

    Yields the path of the log file. Debug records are written only when
    ``verbose`` is set.
    """

    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_path_for(log_dir, started)

    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    previous_level = logger.level
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    logger.info("dotlink run started")
    try:
        yield path
    finally:
        logger.info("dotlink run finished")
        logger.removeHandler(handler)
        logger.setLevel(previous_level)
        handler.close()
