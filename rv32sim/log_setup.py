"""
RV32 Stepper — Logging Setup

Library modules only ever call logging.getLogger(__name__). Handlers
are attached here, by the CLI or by an embedding application:

  console  rich RichHandler, WARNING+ by default
  file     optional, <log_dir>/<name>_YYYYMMDD_HHMMSS.log, DEBUG+
"""

from __future__ import annotations
import logging
from pathlib import Path
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import LOGGER_NAME, LOG_FILE_FORMAT, LOG_DATE_FORMAT


def setup_logging(
    name: str = LOGGER_NAME,
    level: int = logging.DEBUG,
    console_level: int = logging.WARNING,
    log_dir: Optional[Path] = None,
    console: Optional[Console] = None,
) -> logging.Logger:
    """
    Configure and return a logger.

    Calling it again for the same name returns the already configured
    logger untouched, except that the console level is updated.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        for handler in logger.handlers:
            if isinstance(handler, RichHandler):
                handler.setLevel(console_level)
        return logger
    logger.setLevel(level)

    # ── File handler: captures everything (DEBUG+) ──
    log_file = None
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_dir / f"{name}_{ts}.log"
        fh = logging.FileHandler(str(log_file), encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(LOG_FILE_FORMAT, datefmt=LOG_DATE_FORMAT))
        logger.addHandler(fh)

    # ── Console handler ──
    ch = RichHandler(
        console=console,
        level=console_level,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    ch.setLevel(console_level)
    logger.addHandler(ch)

    logger.debug("Logger initialized: %s", name)
    if log_file is not None:
        logger.debug("Log file: %s", log_file)
    logger.debug("Console level: %s", logging.getLevelName(console_level))

    return logger
