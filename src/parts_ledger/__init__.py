"""Inventory, sales and buyer-credit ledger for an auto-parts shop.

Importing the package configures the shared ``log`` used by every module: a
rotating file under ``<project>/.logs`` plus a console stream on stderr. The
console threshold follows ``PARTS_LEDGER_LOG_LEVEL`` (default ``INFO``).
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

__version__ = "1.0.0"

PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_DIR = PROJECT_ROOT / ".logs"
LOG_FILE = LOG_DIR / "parts_ledger.log"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_LEVEL_ENV = "PARTS_LEDGER_LOG_LEVEL"


def _console_level() -> int:
    raw = os.environ.get(LOG_LEVEL_ENV, "INFO").strip().upper()
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else logging.INFO


def _build_file_handler(formatter: logging.Formatter) -> Optional[RotatingFileHandler]:
    """Return a rotating handler for ``LOG_FILE``, or ``None`` if it cannot be opened."""

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(LOG_FILE, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
    except OSError as exc:
        print(f"Warning: unable to initialize log file at '{LOG_FILE}': {exc}", file=sys.stderr)
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def _configure_logging() -> logging.Logger:
    """Attach the file and console handlers once per interpreter."""

    logger = logging.getLogger(__name__)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    file_handler = _build_file_handler(formatter)
    if file_handler is not None:
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(_console_level())
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


log = _configure_logging()
log.debug("Logger initialized for the 'parts_ledger' package (version %s).", __version__)

__all__ = ["log"]
