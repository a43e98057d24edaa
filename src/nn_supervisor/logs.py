from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"


def setup_logging(level: str = "INFO", log_dir: str | Path | None = None) -> None:
    """Replace loguru's default sink. Safe to call more than once."""

    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=_FORMAT)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            sink=str(log_dir / "{time:YYYY-MM-DD}.log"),
            rotation="1 day",
            retention="30 days",
            level=level.upper(),
            format=_FORMAT,
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )
