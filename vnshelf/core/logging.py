"""Centralized logging configuration for VN Shelf.

Every module logs through a child of the ``vnshelf`` logger, e.g.
``vnshelf.game_store`` or ``vnshelf.vndb_api``. Hosts call
``setup_logging()`` once at startup; library use without it stays silent.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

__all__ = ["default_log_file", "logger", "setup_logging"]

logger = logging.getLogger("vnshelf")

# requests logs every connection at DEBUG through urllib3
_NOISY_LOGGERS = ("urllib3",)


def default_log_file() -> Path:
    """``<DATA_DIR>/logs/vnshelf.log`` of the global config."""
    from vnshelf.config import config

    return Path(config.DATA_DIR) / "logs" / "vnshelf.log"


def setup_logging(
    level: int = logging.INFO,
    log_file: Path | None = None,
) -> None:
    """Configure the application logger.

    Calling this more than once only adjusts the level; handlers are
    installed a single time.

    Args:
        level: Console logging level (default: INFO).
        log_file: Optional log file, which always receives DEBUG output.
            Pass ``default_log_file()`` for the standard location.
    """
    logger.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if logger.handlers:
        return

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            logger.warning("Could not open log file %s: %s", log_file, e)
            return
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
